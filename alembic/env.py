import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from inquaire.core.database import Base
from inquaire.platform.identity import models as identity_models  # noqa: F401
from inquaire.platform.organizations import models as organizations_models  # noqa: F401
from inquaire.platform.error_logs import models as error_logs_models  # noqa: F401
from inquaire.business.businesses import models as businesses_models  # noqa: F401
from inquaire.business.channels import models as channels_models  # noqa: F401
from inquaire.business.customers import models as customers_models  # noqa: F401
from inquaire.business.inquiries import models as inquiries_models  # noqa: F401
from inquaire.business.inquiry_replies import models as inquiry_replies_models  # noqa: F401
from inquaire.business.reply_templates import models as reply_templates_models  # noqa: F401
from inquaire.business.industry_configs import models as industry_configs_models  # noqa: F401
from inquaire.business.subscriptions import models as subscriptions_models  # noqa: F401
from inquaire.business.payments import models as payments_models  # noqa: F401
from inquaire.business.webhooks import models as webhooks_models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = os.getenv("DATABASE_URL", config.get_main_option("sqlalchemy.url"))
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = os.getenv("DATABASE_URL", section.get("sqlalchemy.url", ""))
    connectable = engine_from_config(
        section,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
