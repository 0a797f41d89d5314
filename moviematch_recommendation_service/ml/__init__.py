"""Pure computations: weighted ratings, taste profiles, user similarity."""
