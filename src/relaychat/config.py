from dataclasses import dataclass, field
from environs import Env

@dataclass
class JWTConfig:
    secret_key: str
    access_token_expire_minutes: int = 480 # 8 hours
    hash_rounds: int = 12

@dataclass
class DBConfig:
    """ PostgreSQL """
    host: str | None = None
    port: int | None = None
    name: str | None = None
    user: str | None = None
    password: str | None = None

    """ SQLite """
    path: str | None = None

@dataclass
class ChatConfig:
    history_limit: int = 50
    max_message_length: int = 5000
    tombstone_text: str = "This message was deleted"

@dataclass
class LogConfig:
    level: str = "INFO"

@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000

@dataclass
class Config:
    """ Config """
    jwt: JWTConfig
    db: DBConfig
    chat: ChatConfig = field(default_factory=ChatConfig)
    log: LogConfig = field(default_factory=LogConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

def load_config(path: str | None) -> Config:
    env = Env()
    env.read_env(path)

    return Config(
        jwt=JWTConfig(
            secret_key=env('SECRET_KEY'),
            access_token_expire_minutes=env.int('ACCESS_TOKEN_EXPIRE_MINUTES', 480),
            hash_rounds=env.int('PASSWORD_HASH_ROUNDS', 12),
        ),
        db=DBConfig(
            host=env('DB_HOST', None),
            port=env.int('DB_PORT', None),
            name=env('DB_NAME', None),
            user=env('DB_USER', None),
            password=env('DB_PASSWORD', None),
            path=env('DB_PATH', 'data/chat.db')
        ),
        chat=ChatConfig(
            history_limit=env.int('HISTORY_LIMIT', 50),
            max_message_length=env.int('MAX_MESSAGE_LENGTH', 5000),
            tombstone_text=env('TOMBSTONE_TEXT', 'This message was deleted'),
        ),
        log=LogConfig(
            level=env('LOG_LEVEL', 'INFO').upper(),
        ),
        server=ServerConfig(
            host=env('HOST', '0.0.0.0'),
            port=env.int('PORT', 8000),
        )
    )
