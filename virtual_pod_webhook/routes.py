import logging

from flask import Blueprint, jsonify, request

from .helpers import make_admission_response, response_from_result
from .models import AdmissionReviewModel

log = logging.getLogger("virtual-pod-webhook")


def create_routes(engine):
    bp = Blueprint("webhook", __name__)

    @bp.route("/health", methods=["GET"])
    def health():
        return {"status": "healthy"}, 200

    @bp.route("/mutate", methods=["POST"])
    def mutate():
        uid = ""
        try:
            review_json = request.get_json(silent=True)

            admission = AdmissionReviewModel.from_dict(review_json or {})
            if admission is None:
                log.warning("Invalid AdmissionReview payload for /mutate")
                return jsonify(make_admission_response(uid="", allowed=False)), 400

            req = admission.request
            uid = req.uid
            log.debug(
                "Received %s %s request %s", req.operation.value, req.kind, uid
            )
            result = engine.mutate(req)
            return jsonify(
                response_from_result(uid, result, api_version=admission.api_version)
            )
        except Exception as e:
            log.error("Error in /mutate: %s", e, exc_info=True)
            return (
                jsonify(
                    make_admission_response(
                        uid=uid,
                        allowed=True,
                    )
                ),
                500,
            )

    return bp
