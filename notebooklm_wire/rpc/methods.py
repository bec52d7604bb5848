"""batchexecute RPC ids used by the client.

The ids are opaque strings assigned by the NotebookLM front end; they change
rarely but without notice.
"""

LIST_ARTIFACTS = "gArtLc"
GET_ARTIFACT = "BnLyuf"
DELETE_ARTIFACT = "WxBZtb"
RENAME_ARTIFACT = "rc3d8d"

BATCHEXECUTE_PATH = "/_/LabsTailwindUi/data/batchexecute"
STREAM_PATH = (
    "/_/LabsTailwindUi/data/google.internal.labs.tailwind.orchestration.v1."
    "LabsTailwindOrchestrationService/GenerateFreeFormStreamed"
)


def list_artifacts_args(notebook_id: str) -> list:
    return [[2], notebook_id]


def get_artifact_args(artifact_id: str) -> list:
    return [artifact_id]


def rename_artifact_args(artifact_id: str, title: str) -> list:
    return [[artifact_id, title], [["title"]]]


def delete_artifact_args(artifact_id: str) -> list:
    return [artifact_id]
