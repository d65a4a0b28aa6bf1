from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging


def create_app():
    """App factory entrypoint.

    Runtime state (Gemini client, Firestore, job store) lives in
    ``ecc_app.runtime``; the factory attaches the blueprints once.
    """
    config = load_config()
    configure_logging(config.log_level)

    from .runtime import app
    from .blueprints import ALL_BLUEPRINTS

    for blueprint in ALL_BLUEPRINTS:
        if blueprint.name not in app.blueprints:
            app.register_blueprint(blueprint)

    init_extensions(app, config)
    return app
