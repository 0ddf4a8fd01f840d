from flask import Blueprint, jsonify

from utils.deps import booking_store

passes_bp = Blueprint("passes", __name__, url_prefix="/passes")


@passes_bp.get("")
def list_passes():
    passes = booking_store().active_passes()
    return jsonify(success=True, passes=[p.to_dict() for p in passes]), 200


@passes_bp.get("/<int:pass_id>")
def get_pass(pass_id: int):
    return jsonify(success=True, **{"pass": booking_store().get_pass(pass_id).to_dict()}), 200
