def init_extensions(app, config=None) -> None:
    """Record factory state and shared services on ``app.extensions``."""
    if app is None or not hasattr(app, 'extensions'):
        return
    from ecc_app import runtime

    state = app.extensions.setdefault('ecc_app', {})
    state['factory_initialized'] = True
    state['database_optimizer'] = runtime.database_optimizer
    state['app_id'] = config.app_id if config is not None else runtime.ECC_APP_ID
