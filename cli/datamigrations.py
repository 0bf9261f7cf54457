"""
cli/datamigrations.py
One-off data migrations run through `dashctl admin data-migration`.

encrypt-datasource-passwords:
  data_source.password            → secure_json_data["password"]
  data_source.basic_auth_password → secure_json_data["basicAuthPassword"]
Values are encrypted with security.secret_key and stored base64 encoded;
the plaintext columns are blanked. Rows without plaintext are untouched,
so running it again is a no-op.
"""

from __future__ import annotations

import base64
import logging

from cli.commandline import CommandLine
from core.crypto import encrypt
from core.errors import ConfigError
from core.sqlstore import SqlStore
from core.theme import theme as _theme

logger = logging.getLogger(__name__)

# plaintext column → secure_json_data key
SECRET_FIELDS = {
    "password": "password",
    "basic_auth_password": "basicAuthPassword",
}


def encrypt_datasource_passwords(cmd: CommandLine, store: SqlStore):
    secret_key = store.cfg.secret_key if store.cfg is not None else ""
    if not secret_key:
        raise ConfigError("security.secret_key is not set")

    counts = {column: 0 for column in SECRET_FIELDS}
    with store.transaction():
        for ds in store.data_sources_with_plaintext_secrets():
            secure = dict(ds["secure_json_data"])
            cleared = {}
            for column, key in SECRET_FIELDS.items():
                if not ds[column]:
                    continue
                secure[key] = encrypt_secret(ds[column], secret_key)
                cleared[column] = True
                counts[column] += 1
            store.update_data_source_secrets(
                ds["id"], secure,
                clear_password=cleared.get("password", False),
                clear_basic_auth_password=cleared.get("basic_auth_password", False),
            )
            logger.debug("migrated secrets of data source %s (%s)", ds["id"], ds["name"])

    if store.bus is not None:
        store.bus.publish("datasource.secrets_moved", counts=dict(counts))

    check = _theme.check()
    cmd.console.print(f"{check} Encrypted password field for {counts['password']} datasources")
    cmd.console.print(f"{check} Encrypted basicAuthPassword field for "
                      f"{counts['basic_auth_password']} datasources")


def encrypt_secret(value: str, secret_key: str) -> str:
    return base64.b64encode(encrypt(value.encode("utf-8"), secret_key)).decode("ascii")
