"""Flask application factory."""
from flask import Flask, request, jsonify
from estimator.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (degrades to no-op when unavailable)
    from estimator.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from estimator.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Authenticated identity for every request
    from estimator.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        load_current_user()

    # Error Handlers
    from estimator.exceptions import EstimatorError

    @app.errorhandler(EstimatorError)
    def handle_estimator_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"EstimatorError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"EstimatorError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}", exc_info=True)
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from estimator.blueprints.main import main_bp
    from estimator.blueprints.materials import materials_bp
    from estimator.blueprints.products import products_bp
    from estimator.blueprints.estimations import estimations_bp
    from estimator.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(materials_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(estimations_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from estimator.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Estimator started (database={app.config['SQLALCHEMY_DATABASE_URI'].split('@')[-1]})")

    return app
