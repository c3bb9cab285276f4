"""Constants for the LiteLLM Operator."""

# API Group
API_GROUP = "litellm.cloud37.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_PROVIDER_CONFIG = "ProviderConfig"
KIND_PROVIDER_CONFIG_USAGE = "ProviderConfigUsage"
KIND_KEY = "Key"
KIND_TEAM = "Team"

# Plurals
PLURAL_PROVIDER_CONFIGS = "providerconfigs"
PLURAL_PROVIDER_CONFIG_USAGES = "providerconfigusages"
PLURAL_KEYS = "keys"
PLURAL_TEAMS = "teams"

# Labels
LABEL_MANAGED_BY = f"{API_GROUP}/managed-by"
LABEL_PROVIDER_CONFIG = f"{API_GROUP}/provider-config"
LABEL_RESOURCE_KIND = f"{API_GROUP}/resource-kind"
LABEL_RESOURCE_NAME = f"{API_GROUP}/resource-name"

# Annotations
ANNOTATION_EXTERNAL_CREATE_PENDING = f"{API_GROUP}/external-create-pending"
ANNOTATION_EXTERNAL_CREATE_SUCCEEDED = f"{API_GROUP}/external-create-succeeded"
ANNOTATION_EXTERNAL_CREATE_FAILED = f"{API_GROUP}/external-create-failed"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "litellm-operator"

# Default ProviderConfig name when a record carries no providerConfigRef
DEFAULT_PROVIDER_CONFIG = "default"

# Deletion policies
DELETION_POLICY_DELETE = "Delete"
DELETION_POLICY_ORPHAN = "Orphan"

# Credential sources
CREDENTIALS_SOURCE_NONE = "None"
CREDENTIALS_SOURCE_SECRET = "Secret"
CREDENTIALS_SOURCE_ENVIRONMENT = "Environment"
CREDENTIALS_SOURCE_FILESYSTEM = "Filesystem"
CREDENTIALS_SOURCE_INLINE = "Inline"
CREDENTIALS_SOURCE_INJECTED_IDENTITY = "InjectedIdentity"

# Condition Types
COND_READY = "Ready"
COND_SYNCED = "Synced"

# Condition Reasons
REASON_AVAILABLE = "Available"
REASON_UNAVAILABLE = "Unavailable"
REASON_CREATING = "Creating"
REASON_DELETING = "Deleting"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_CANNOT_CONNECT = "CannotConnectToProvider"
EVENT_REASON_CANNOT_OBSERVE = "CannotObserveExternalResource"
EVENT_REASON_CANNOT_CREATE = "CannotCreateExternalResource"
EVENT_REASON_CANNOT_UPDATE = "CannotUpdateExternalResource"
EVENT_REASON_CANNOT_DELETE = "CannotDeleteExternalResource"
EVENT_REASON_CANNOT_PUBLISH = "CannotPublishConnectionDetails"
EVENT_REASON_CREATED = "CreatedExternalResource"
EVENT_REASON_UPDATED = "UpdatedExternalResource"
EVENT_REASON_DELETED = "DeletedExternalResource"
EVENT_REASON_PROVIDER_CONFIG_IN_USE = "ProviderConfigInUse"
