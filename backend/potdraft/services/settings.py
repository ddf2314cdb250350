"""Settings lookup shared by the pieces that build themselves from config."""


def config_getter(config):
    """Return `get(key, default=None)` over a dict-like config (Flask's
    `app.config` included) or a plain settings class such as `config.Config`."""
    if isinstance(config, dict):
        return config.get

    def get(key, default=None):
        return getattr(config, key, default)
    return get
