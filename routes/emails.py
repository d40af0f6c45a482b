"""Ad-hoc email dispatch and sent-email history."""
from flask import Blueprint, jsonify, request
from flask_login import current_user

from extensions import csrf, db
from models import SentEmail
from utils.decorators import roles_required
from utils.email_service import get_notifier, send_email

emails_bp = Blueprint("emails", __name__, url_prefix="/api")


@emails_bp.route("/send-email", methods=["POST"])
@csrf.exempt
@roles_required("admin", "pcb")
def send():
    payload = request.get_json(silent=True) or {}
    to = (payload.get("to") or "").strip()
    subject = (payload.get("subject") or "").strip()
    body = payload.get("body") or ""
    if not to or not subject or not body.strip():
        return jsonify({"error": "to, subject and body are required."}), 400

    notifier = get_notifier()
    if not send_email(db.session, notifier, to, subject, body):
        if not notifier.is_configured:
            return jsonify({"error": "Missing SMTP configuration."}), 500
        return jsonify({"error": "Error sending email."}), 500
    return jsonify({"message": "Email sent successfully.", "sent_by": current_user.id})


@emails_bp.route("/emails", methods=["GET"])
@roles_required("admin", "pcb")
def history():
    limit = min(request.args.get("limit", 100, type=int) or 100, 500)
    emails = db.session.query(SentEmail).order_by(SentEmail.sent_at.desc(), SentEmail.id.desc()).limit(limit).all()
    return jsonify({"emails": [e.to_dict() for e in emails]})
