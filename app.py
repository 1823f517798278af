import logging
import os
from datetime import datetime

from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from checkout import (
    DEFAULT_PREFERRED_DOUBLES,
    DEFAULT_TARGET,
    DOUBLES,
    FINISHING_CODES,
    PREFERRED_DOUBLE_CHOICES,
    TRIPLES,
    CheckoutOptions,
    clamp_target,
    compute_checkout,
    parse_preferred,
    route_codes,
    route_total,
    segment_label,
    toggle_preferred,
)

# Logging level can be raised/lowered with DARTS_LOG_LEVEL (e.g. DEBUG to trace tier selection).
logging.basicConfig(level=getattr(logging, os.environ.get("DARTS_LOG_LEVEL", "INFO").upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = Flask(__name__)
base_dir = os.path.abspath(os.path.dirname(__file__))
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DARTS_DATABASE_URI", "sqlite:///" + os.path.join(base_dir, "darts.db")
)
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
db = SQLAlchemy(app)

TRUTHY = ("1", "true", "yes", "on")


# Models
class Settings(db.Model):
    """
    Single-row table holding the calculator state the client restores on reload:
    the last score typed in, the preferred finishing doubles and the
    "only show preferred doubles" switch.
    """

    id = db.Column(db.Integer, primary_key=True)
    # Comma separated double codes, e.g. "D20,D16"
    preferred_doubles = db.Column(db.String(255), default=",".join(DEFAULT_PREFERRED_DOUBLES))
    show_only_preferred = db.Column(db.Boolean, default=False)
    last_target = db.Column(db.Integer, default=DEFAULT_TARGET)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def preferred_set(self):
        if self.preferred_doubles is None:
            return frozenset(DEFAULT_PREFERRED_DOUBLES)
        return parse_preferred(self.preferred_doubles)

    def to_dict(self):
        return {
            "preferred_doubles": sorted_codes(self.preferred_set),
            "show_only_preferred": bool(self.show_only_preferred),
            "target": self.last_target if self.last_target is not None else DEFAULT_TARGET,
            "preferred_choices": list(PREFERRED_DOUBLE_CHOICES),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# Columns added after the first release; older SQLite files are patched at startup.
SETTINGS_COLUMNS = {
    "preferred_doubles": f"VARCHAR(255) DEFAULT '{','.join(DEFAULT_PREFERRED_DOUBLES)}'",
    "show_only_preferred": "INTEGER DEFAULT 0",
    "last_target": f"INTEGER DEFAULT {DEFAULT_TARGET}",
}


def ensure_schema_compatibility(engine=None):
    """
    Add any missing settings columns for SQLite databases created by older versions.

    Only simple nullable/defaulted columns are added via ALTER TABLE ... ADD COLUMN;
    failures are logged and the app keeps running on the existing schema.
    """
    engine = engine if engine is not None else db.engine
    if engine.dialect.name != "sqlite":
        return
    with engine.connect() as conn:
        rows = conn.execute(text("PRAGMA table_info('settings')")).fetchall()
        existing = {row[1] for row in rows}
        for column, definition in SETTINGS_COLUMNS.items():
            if column in existing:
                continue
            try:
                conn.execute(text(f"ALTER TABLE settings ADD COLUMN {column} {definition}"))
                conn.commit()
                logger.info("Added missing settings column %s", column)
            except OperationalError:
                logger.exception("Failed to add settings column %s", column)


# Ensure tables exist
with app.app_context():
    db.create_all()
    ensure_schema_compatibility()


# Helpers
def sorted_codes(codes):
    # D1..D20 then DBULL, unknown codes last in plain order
    order = {d.code: i for i, d in enumerate(DOUBLES)}
    return sorted(codes, key=lambda c: (order.get(c, len(order)), c))


def segment_to_dict(seg):
    return {"code": seg.code, "value": seg.value, "kind": seg.kind, "label": segment_label(seg)}


def route_to_dict(route, preferred):
    return {
        "darts": [segment_to_dict(seg) for seg in route],
        "codes": list(route_codes(route)),
        "total": route_total(route),
        "preferred": route[-1].code in preferred,
    }


def describe_result(result):
    """Human-readable summary for the result header."""
    if result.min_darts is None:
        return "No checkout possible"
    count = len(result.routes)
    if not count:
        return "Adjust your preferred doubles or the score."
    possibilities = "possibility" if count == 1 else "possibilities"
    darts = "dart" if result.min_darts == 1 else "darts"
    return f"{count} {possibilities} in {result.min_darts} {darts}"


def is_truthy(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def parse_int(value):
    """Return int(value) or None for missing/invalid input (booleans are rejected)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        return None


def get_or_create_settings():
    s = Settings.query.first()
    if not s:
        s = Settings(
            preferred_doubles=",".join(DEFAULT_PREFERRED_DOUBLES),
            show_only_preferred=False,
            last_target=DEFAULT_TARGET,
        )
        db.session.add(s)
    return s


# Checkout APIs
@app.route("/api/checkout", methods=["GET"])
def checkout_api():
    """
    Query parameters (all optional, saved settings are used for anything missing):
      target=<int>            score to check out
      preferred=D20,D16       preferred finishing doubles
      only_preferred=1|0      hide routes that don't finish on a preferred double
      clamp=1                 clamp target into 2..170 before computing
    """
    saved = Settings.query.first()

    raw_target = request.args.get("target")
    if raw_target is None:
        target = saved.last_target if saved and saved.last_target is not None else DEFAULT_TARGET
    else:
        target = parse_int(raw_target)
        if target is None:
            return jsonify({"error": "target must be an integer"}), 400
    if is_truthy(request.args.get("clamp", "0")):
        target = clamp_target(target)

    if "preferred" in request.args:
        preferred = parse_preferred(request.args.get("preferred"))
    else:
        preferred = saved.preferred_set if saved else frozenset(DEFAULT_PREFERRED_DOUBLES)

    if "only_preferred" in request.args:
        only_preferred = is_truthy(request.args.get("only_preferred"))
    else:
        only_preferred = bool(saved.show_only_preferred) if saved else False

    result = compute_checkout(target, CheckoutOptions(preferred, only_preferred))
    return jsonify(
        {
            "target": target,
            "min_darts": result.min_darts,
            "count": len(result.routes),
            "routes": [route_to_dict(r, preferred) for r in result.routes],
            "preferred_doubles": sorted_codes(preferred),
            "show_only_preferred": only_preferred,
            "message": describe_result(result),
        }
    )


@app.route("/api/checkout/segments", methods=["GET"])
def checkout_segments():
    # Reference sheet of triples/doubles shown next to the calculator
    return jsonify(
        {
            "triples": [segment_to_dict(t) for t in TRIPLES],
            "doubles": [segment_to_dict(d) for d in DOUBLES],
            "note": "The last dart must be a double (including Double Bull = 50).",
        }
    )


# Settings APIs
@app.route("/api/settings", methods=["GET", "POST"])
def settings_api():
    """
    GET: returns settings (single-row). If absent, returns defaults.
    POST: accepts JSON to update fields:
      { "target": <int>, "target_delta": <int>, "preferred_doubles": ["D20", ...],
        "show_only_preferred": true/false }
    Targets are clamped into 2..170.
    """
    if request.method == "GET":
        s = Settings.query.first()
        if not s:
            return jsonify(
                {
                    "preferred_doubles": sorted_codes(DEFAULT_PREFERRED_DOUBLES),
                    "show_only_preferred": False,
                    "target": DEFAULT_TARGET,
                    "preferred_choices": list(PREFERRED_DOUBLE_CHOICES),
                    "updated_at": None,
                }
            )
        return jsonify(s.to_dict())

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "body must be a JSON object"}), 400

    target = None
    if "target" in data:
        target = parse_int(data.get("target"))
        if target is None:
            return jsonify({"error": "target must be an integer"}), 400
    delta = None
    if "target_delta" in data:
        delta = parse_int(data.get("target_delta"))
        if delta is None:
            return jsonify({"error": "target_delta must be an integer"}), 400
    preferred = None
    if "preferred_doubles" in data:
        codes = data.get("preferred_doubles") or []
        if isinstance(codes, str):
            codes = codes.split(",")
        if not isinstance(codes, list):
            return jsonify({"error": "preferred_doubles must be a list of codes"}), 400
        preferred = frozenset(str(c).strip().upper() for c in codes if str(c).strip())
        unknown = preferred - FINISHING_CODES
        if unknown:
            return jsonify({"error": "Unknown double codes", "codes": sorted(unknown)}), 400

    try:
        s = get_or_create_settings()
        if target is not None:
            s.last_target = clamp_target(target)
        if delta is not None:
            current = s.last_target if s.last_target is not None else DEFAULT_TARGET
            s.last_target = clamp_target(current + delta)
        if preferred is not None:
            s.preferred_doubles = ",".join(sorted_codes(preferred))
        if "show_only_preferred" in data:
            s.show_only_preferred = is_truthy(data.get("show_only_preferred"))
        db.session.commit()
        logger.info(
            "Settings updated: target=%s preferred=%s only_preferred=%s",
            s.last_target,
            s.preferred_doubles,
            s.show_only_preferred,
        )
        return jsonify(s.to_dict())
    except Exception as e:
        logger.exception("Failed to update settings: %s", e)
        db.session.rollback()
        return jsonify({"error": "Failed to update settings", "details": str(e)}), 500


@app.route("/api/settings/preferred/<code>/toggle", methods=["POST"])
def toggle_preferred_double(code):
    code = code.strip().upper()
    if code not in FINISHING_CODES:
        return jsonify({"error": "Unknown double code", "code": code}), 400
    try:
        s = get_or_create_settings()
        s.preferred_doubles = ",".join(sorted_codes(toggle_preferred(s.preferred_set, code)))
        db.session.commit()
        logger.info("Preferred doubles toggled %s -> %s", code, s.preferred_doubles)
        return jsonify(s.to_dict())
    except Exception as e:
        logger.exception("Failed to toggle preferred double %s: %s", code, e)
        db.session.rollback()
        return jsonify({"error": "Failed to update settings", "details": str(e)}), 500


@app.route("/api/settings/reset_target", methods=["POST"])
def reset_target():
    try:
        s = get_or_create_settings()
        s.last_target = DEFAULT_TARGET
        db.session.commit()
        logger.info("Target reset to %d", DEFAULT_TARGET)
        return jsonify(s.to_dict())
    except Exception as e:
        logger.exception("Failed to reset target: %s", e)
        db.session.rollback()
        return jsonify({"error": "Failed to update settings", "details": str(e)}), 500


if __name__ == "__main__":
    app.run(debug=True)
