import os


class Config:
    """Base configuration class with common settings."""

    # Application settings
    APP_NAME = os.getenv("APP_NAME", "dbstack")
    APP_STAGE = os.getenv("APP_STAGE", "dev")

    # Postgres component defaults
    POSTGRES_DEFAULT_VERSION = os.getenv("POSTGRES_DEFAULT_VERSION", "15.5")
    POSTGRES_MASTER_USERNAME = os.getenv("POSTGRES_MASTER_USERNAME", "postgres")

    # Provisioning backend settings
    PROVISIONER = os.getenv("PROVISIONER", "memory")
    AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
    AWS_ACCOUNT_ID = os.getenv("AWS_ACCOUNT_ID", "000000000000")
    MAX_PARALLEL_OPERATIONS = int(os.getenv("MAX_PARALLEL_OPERATIONS", "5"))
    OPERATION_TIMEOUT = int(os.getenv("OPERATION_TIMEOUT", "1800"))
    WAIT_FOR_AVAILABLE = os.getenv("WAIT_FOR_AVAILABLE", "True").lower() == "true"
    DRY_RUN = os.getenv("DRY_RUN", "False").lower() == "true"

    # Logging settings
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    @classmethod
    def provisioner_settings(cls):
        """Build the keyword arguments handed to ``get_provisioner``."""
        return {
            "region": cls.AWS_REGION,
            "timeout": cls.OPERATION_TIMEOUT,
            "max_parallel": cls.MAX_PARALLEL_OPERATIONS,
            "wait_for_available": cls.WAIT_FOR_AVAILABLE,
            "dry_run": cls.DRY_RUN,
            "credentials": {"account_id": cls.AWS_ACCOUNT_ID},
        }


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DEBUG = True

    # Never talk to a real cloud from tests
    PROVISIONER = "memory"
    WAIT_FOR_AVAILABLE = False
    APP_NAME = "testapp"
    APP_STAGE = "test"


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
    TESTING = False
    PROVISIONER = os.getenv("PROVISIONER", "aws")


# Configuration dictionary for easy selection
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(config_name=None):
    """Get configuration class based on environment.

    Args:
        config_name: Configuration name ('development', 'testing', 'production').
                    If None, uses DBSTACK_ENV environment variable or defaults to 'development'.

    Returns:
        Configuration class.
    """
    if config_name is None:
        config_name = os.getenv("DBSTACK_ENV", "development")

    config_class = config.get(config_name, DevelopmentConfig)
    return config_class
