# Webhooks time out after 30s at the API server, so a single rule may never be
# granted more than that
MAX_RULE_TIMEOUT_SECONDS = 30
DEFAULT_RULE_TIMEOUT_SECONDS = 10
# upper bound for all outgoing HTTP calls of one pipeline run
AIO_TIMEOUT_SECONDS = 29

FAIL = "Fail"
IGNORE = "Ignore"
FAILURE_POLICIES = (FAIL, IGNORE)

DEFAULT_ADMISSION_API_VERSION = "admission.k8s.io/v1"
SUPPORTED_ADMISSION_API_VERSIONS = ("admission.k8s.io/v1", "admission.k8s.io/v1beta1")

DEFAULT_HOME_NAMESPACE = "portier"
DETECTION_MODE = "DETECTION_MODE"
HOME_NAMESPACE = "POD_NAMESPACE"
CONFIG_PATH = "PORTIER_CONFIG_PATH"

MALFORMED_REQUEST_MSG = "malformed request"
UNKNOWN_ERROR_MSG = "unknown error. please check the logs."
DETECTION_MODE_SUFFIX = " (not denied due to DETECTION_MODE)"
