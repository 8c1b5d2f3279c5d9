"""Constants for the App Sync Operator."""

# API Group
API_GROUP = "appsync.cloud37.dev"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_APP = "App"
PLURAL_APP = "apps"

# Finalizers
FINALIZER = f"{API_GROUP}/delete"

CONTROLLER_NAME = "appsync-operator"

# Condition status value used for every active condition
CONDITION_TRUE = "True"

# Friendly descriptions
DESC_RECONCILING = "Reconciling"
DESC_RECONCILE_SUCCEEDED = "Reconcile succeeded"
DESC_RECONCILE_FAILED = "Reconcile failed: {error}"
DESC_DELETING = "Deleting"
DESC_DELETE_FAILED = "Delete failed: {error}"
DESC_CANCELED_PAUSED = "Canceled/paused"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_SUCCEEDED = "ReconcileSucceeded"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_DELETE_FAILED = "DeleteFailed"

# Environment overrides applied to local rendering tools so they never
# reach the cluster they happen to run in.
NEUTRALIZED_CLUSTER_ENV = {
    "KUBERNETES_SERVICE_HOST": "not-real",
    "KUBERNETES_SERVICE_PORT": "not-real",
}

# Values path meaning "read values from stdin"
STDIN_PATH = "-"
