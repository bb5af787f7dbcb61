"""Shared label keys, reason codes and resource coordinates."""

# API group for the operator's own resources
API_GROUP = "operator.baaas.kie.org"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource kinds and plurals
KIND_DECISION_REQUEST = "DecisionRequest"
KIND_DECISION = "Decision"
KIND_DECISION_VERSION = "DecisionVersion"

PLURAL_DECISION_REQUEST = "decisionrequests"
PLURAL_DECISION = "decisions"
PLURAL_DECISION_VERSION = "decisionversions"

# Derived workload, owned by the Kogito operator
RUNTIME_GROUP = "app.kiegroup.org"
RUNTIME_VERSION = "v1beta1"
RUNTIME_API_VERSION = f"{RUNTIME_GROUP}/{RUNTIME_VERSION}"
RUNTIME_KIND = "KogitoRuntime"
RUNTIME_PLURAL = "kogitoruntimes"

# Labels
OPERATOR_NAME = "baaas-ccp-operator"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
DECISION_REQUEST_LABEL = "org.kie.baaas.decisionrequest"
CUSTOMER_LABEL = "org.kie.baaas.customer"
DECISION_LABEL = "org.kie.baaas.decision"
DECISION_VERSION_LABEL = "org.kie.baaas.decisionversion"
RESOURCE_LABEL = "org.kie.baaas.resource"
RESOURCE_KOGITO_SERVICE = "kogito-service"

# Version condition types
CONDITION_BUILD = "Build"
CONDITION_SERVICE = "Service"
CONDITION_READY = "Ready"

# Condition reasons
REASON_SUCCESS = "Success"
REASON_FAILED = "Failed"
REASON_PROVISIONING = "Provisioning"
REASON_DEPLOYED = "Deployed"
REASON_UNKNOWN = "Unknown"
REASON_BUILD_FAILED = "BuildFailed"
REASON_SERVICE_FAILED = "ServiceFailed"

# Conditions reported by the runtime controller
RUNTIME_CONDITION_PROVISIONING = "Provisioning"
RUNTIME_CONDITION_DEPLOYED = "Deployed"

# Admission rejection reasons
VALIDATION_ERROR = "ValidationError"
DUPLICATED_VERSION = "DuplicatedVersion"
VERSION_BUILD_FAILED = "VersionBuildFailed"
SERVER_ERROR = "ServerError"

# Runtime descriptor
RUNTIME_REPLICAS = 1
RUNTIME_PORT = 8080
KAFKA_SECRET_SUFFIX = "-kafka-auth"
KAFKA_CLIENT_ID_KEY = "clientid"
KAFKA_CLIENT_SECRET_KEY = "clientsecret"
ENV_KAFKA_BOOTSTRAP_SERVERS = "BAAAS_KAFKA_BOOTSTRAP_SERVERS"
ENV_KAFKA_CLIENT_ID = "BAAAS_KAFKA_CLIENTID"
ENV_KAFKA_CLIENT_SECRET = "BAAAS_KAFKA_CLIENTSECRET"
ENV_KAFKA_INCOMING_TOPIC = "BAAAS_KAFKA_INCOMING_TOPIC"
ENV_KAFKA_OUTGOING_TOPIC = "BAAAS_KAFKA_OUTGOING_TOPIC"
