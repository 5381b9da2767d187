from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Door Sensor Relay"

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: str = ""  # e.g. "./public" to serve the dashboard at /

    # MQTT broker
    mqtt_enabled: bool = True
    mqtt_broker_host: str = "broker.hivemq.com"
    mqtt_broker_port: int = 1883
    mqtt_topic: str = Field(default="home/ir/state")
    mqtt_username: str = ""
    mqtt_password: str = ""
    mqtt_keepalive_seconds: int = 60
    mqtt_client_id_prefix: str = "door-relay"
    mqtt_tls: bool = False

    # Push MQTT_CONNECTED / MQTT_DISCONNECTED to stream clients
    announce_connection_status: bool = True

    # Server-sent events
    stream_keepalive_seconds: float = 15.0
    stream_queue_size: int = 100

    # Logging
    log_level: str = "INFO"
    log_file: str = "door_relay.log"


settings = Settings()
