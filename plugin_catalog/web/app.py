"""Flask application for the Plugin Catalog JSON API."""

from flask import Flask, jsonify
from .blueprints.api import api_bp
from ..core.exceptions import FileSystemError, PluginCatalogError, ValidationError


def create_app(config=None):
    """
    Create and configure the Flask application.

    Args:
        config: Configuration dictionary. ``PLUGIN_CATALOG_CONFIG`` may hold
                an AppConfig to use instead of the global configuration.

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Default configuration
    app.config.update({
        'SECRET_KEY': 'dev-key-change-in-production',
        'JSON_SORT_KEYS': False,
    })

    if config:
        app.config.update(config)

    app_config = app.config.get('PLUGIN_CATALOG_CONFIG')
    if app_config is not None and 'SECRET_KEY' not in (config or {}):
        app.config['SECRET_KEY'] = app_config.web.secret_key
    app.json.sort_keys = app.config['JSON_SORT_KEYS']

    app.register_blueprint(api_bp, url_prefix='/api')

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return jsonify({
            'error': 'Validation error',
            'message': str(error)
        }), 400

    @app.errorhandler(FileSystemError)
    def filesystem_error(error):
        app.logger.error(f'File System Error: {error}', exc_info=True)
        return jsonify({
            'error': 'File system error',
            'message': str(error)
        }), 400

    @app.errorhandler(PluginCatalogError)
    def catalog_error(error):
        app.logger.error(f'Application Error: {error}', exc_info=True)
        return jsonify({
            'error': 'Application error',
            'message': str(error)
        }), 400

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f'Server Error: {error}', exc_info=True)
        return jsonify({
            'error': 'Internal server error',
            'message': 'An unexpected error occurred'
        }), 500

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host='127.0.0.1', port=5000)
