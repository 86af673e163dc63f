"""Constants for the Service Account Token Operator."""

from datetime import timedelta

# API Group
API_GROUP = "or.io.or.io"
API_VERSION = "v1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_SERVICE_ACCOUNT = "ServiceAccount"
KIND_TOKEN_RENEWAL_REQUEST = "TokenRenewalRequest"
PLURAL_TOKEN_RENEWAL_REQUESTS = "tokenrenewalrequests"

# Identity annotations
ANNOTATION_PREFIX = "or.io"
ANNOTATION_CREATE_SECRET = f"{ANNOTATION_PREFIX}/create-secret"
ANNOTATION_RENEW_AFTER = f"{ANNOTATION_PREFIX}/renew-after"
ANNOTATION_LAST_RENEWAL = f"{ANNOTATION_PREFIX}/last-renewal"
ANNOTATION_TOKEN_EXPIRATION = f"{ANNOTATION_PREFIX}/token-expiration"

# Secret shape
ANNOTATION_SERVICE_ACCOUNT_NAME = "kubernetes.io/service-account.name"
SECRET_TYPE_SERVICE_ACCOUNT_TOKEN = "kubernetes.io/service-account-token"
SECRET_NAME_SUFFIX = "-token"
SECRET_TOKEN_KEY = "token"

# Token issuance
TOKEN_AUDIENCE = "https://kubernetes.default.svc"

# Renewal timing defaults
DEFAULT_MIN_RENEWAL_INTERVAL = timedelta(hours=24)
DEFAULT_RENEWAL_THRESHOLD = timedelta(minutes=30)
DEFAULT_REQUEUE_LEAD_TIME = timedelta(minutes=5)
DEFAULT_CONFLICT_RETRIES = 3

# GitLab variable defaults
GITLAB_API_PATH = "/api/v4"
GITLAB_VARIABLE_TYPE = "env_var"
DEFAULT_GITLAB_TOKEN_KEY = "token"

# Status messages
STATUS_MESSAGE_VALID = "token is valid"

# Field Manager
FIELD_MANAGER = "sa-token-operator"
CONTROLLER_NAME = "sa-token-operator"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_VALIDATE_FAILED = "ValidateFailed"
EVENT_REASON_SECRET_CREATED = "SecretCreated"
EVENT_REASON_TOKEN_RENEWED = "TokenRenewed"
EVENT_REASON_VARIABLE_SYNCED = "VariableSynced"
