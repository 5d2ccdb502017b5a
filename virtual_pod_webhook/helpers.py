import base64
import json
from typing import Any

import jsonpatch

from .models import AdmissionResult


def create_json_patch(before: dict[str, Any], after: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the JSONPatch operations turning before into after."""
    return jsonpatch.JsonPatch.from_diff(before, after).patch


def make_admission_response(
    uid: str,
    allowed: bool = True,
    patch: list[dict[str, Any]] | None = None,
    message: str | None = None,
    code: int | None = None,
    api_version: str = "admission.k8s.io/v1",
) -> dict[str, Any]:
    """Return the AdmissionReview the webhook sends to K8s to allow and optionally patch a Pod."""
    resp: dict[str, Any] = {"uid": uid, "allowed": allowed}

    if patch:
        resp["patchType"] = "JSONPatch"
        resp["patch"] = base64.b64encode(json.dumps(patch).encode()).decode()

    if message is not None or code is not None:
        status: dict[str, Any] = {}
        if code is not None:
            status["code"] = code
        if message is not None:
            status["message"] = message
        resp["status"] = status

    return {
        "apiVersion": api_version,
        "kind": "AdmissionReview",
        "response": resp,
    }


def response_from_result(
    uid: str, result: AdmissionResult, api_version: str = "admission.k8s.io/v1"
) -> dict[str, Any]:
    return make_admission_response(
        uid,
        allowed=result.allowed,
        patch=result.patch,
        message=result.message,
        code=result.code,
        api_version=api_version,
    )
