import azure.functions as func

from moviematch_recommendation_service.blueprints import admin_bp, recommendations_bp

app = func.FunctionApp()

app.register_blueprint(recommendations_bp.bp)
app.register_blueprint(admin_bp.bp)
