import os


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


# Proxmox VE
PROXMOX_API_URL = os.environ.get("PROXMOX_API_URL", "https://proxmox.example.com/api2/json")
PROXMOX_API_TOKEN_NAME = os.environ.get("PROXMOX_API_TOKEN_NAME", "")
PROXMOX_API_TOKEN_VALUE = os.environ.get("PROXMOX_API_TOKEN_VALUE", "")
PROXMOX_USERNAME = os.environ.get("PROXMOX_USERNAME", "")
PROXMOX_PASSWORD = os.environ.get("PROXMOX_PASSWORD", "")
PROXMOX_API_VERIFY_SSL = _flag("PROXMOX_API_VERIFY_SSL", "true")

# phpIPAM
PHPIPAM_API_URL = os.environ.get("PHPIPAM_API_URL", "https://ipam.example.com/api")
PHPIPAM_API_APP_ID = os.environ.get("PHPIPAM_API_APP_ID", "server-name-picker")
PHPIPAM_API_TOKEN = os.environ.get("PHPIPAM_API_TOKEN", "")
PHPIPAM_API_USERNAME = os.environ.get("PHPIPAM_API_USERNAME", "")
PHPIPAM_API_PASSWORD = os.environ.get("PHPIPAM_API_PASSWORD", "")
PHPIPAM_API_VERIFY_SSL = _flag("PHPIPAM_API_VERIFY_SSL", "true")

UPSTREAM_TIMEOUT_S = float(os.environ.get("UPSTREAM_TIMEOUT_S", "10"))

# Result cache
CACHE_TTL = int(os.environ.get("CACHE_TTL", "300"))
CACHE_CHECK_PERIOD = int(os.environ.get("CACHE_CHECK_PERIOD", "120"))

# phpIPAM tokens live 6h, Proxmox tickets 2h. Cache them for 10 minutes less.
IPAM_TOKEN_TTL = 21000
PROXMOX_TICKET_TTL = 6600

# Kafka
KAFKA_BOOTSTRAP = os.environ.get("KAFKA_BOOTSTRAP", "localhost:29092")
KAFKA_GROUP_ID = os.environ.get("KAFKA_GROUP_ID", "kafka-consumer-group")
KAFKA_TOPIC_HOSTNAME_REQUEST = os.environ.get("KAFKA_TOPIC_HOSTNAME_REQUEST", "hostname-requests")
KAFKA_TOPIC_HOSTNAME_RESPONSE = os.environ.get("KAFKA_TOPIC_HOSTNAME_RESPONSE", "hostname-responses")
KAFKA_TOPIC_IP_REQUEST = os.environ.get("KAFKA_TOPIC_IP_REQUEST", "ip-requests")
KAFKA_TOPIC_IP_RESPONSE = os.environ.get("KAFKA_TOPIC_IP_RESPONSE", "ip-responses")
KAFKA_TOPIC_USER_ACTIVITY = os.environ.get("KAFKA_TOPIC_USER_ACTIVITY", "user-activity")

# HTTP services
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
HARDENED_ERRORS = _flag("HARDENED_ERRORS", "false") or os.environ.get("APP_ENV", "") == "production"
PROXMOX_SERVICE_PORT = int(os.environ.get("PROXMOX_SERVICE_PORT", "8002"))
IPAM_SERVICE_PORT = int(os.environ.get("IPAM_SERVICE_PORT", "8003"))
