import datetime as dt
import logging
import sys

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import set_env_vars
from ai_util.catalog import complete_suggestion
from ai_util.errors import CoachError, ValidationError
from ai_util.gemini_client import GeminiClient
from ai_util.performance import BENCHMARK_MINUTES, PerformanceTracker
from ai_util.prompts import PROMPT_TEMPLATES, available_templates, build_prompt
from ai_util.response_parser import parse_suggestion
from backend.rate_limit import FixedWindowLimiter

set_env_vars.load()
settings = set_env_vars.load_settings()

logger = logging.getLogger("problem_coach")

server = Flask(__name__)

gemini = GeminiClient(
    api_key=settings.gemini_api_key,
    model=settings.gemini_model,
    base_url=settings.gemini_base_url,
    timeout_s=settings.gemini_timeout_s,
)
performance = PerformanceTracker()
limiter = FixedWindowLimiter(settings.rate_limit_max, settings.rate_limit_window_s)

NEXT_PROBLEM_FIELDS = ("last_problem", "difficulty", "time_taken", "topic")


def configure_logging(level: int = logging.INFO) -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)


def _now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


@server.before_request
def rate_limit():
    if request.path == "/health":
        return None
    if not limiter.hit(request.remote_addr or "unknown"):
        return _error("Too many requests, please try again later.", 429)
    return None


@server.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return response


@server.errorhandler(CoachError)
def handle_coach_error(err: CoachError):
    if err.status_code >= 500:
        logger.error("Request failed (%s): %s", err.status_code, err)
    return _error(err.client_message, err.status_code)


@server.errorhandler(HTTPException)
def handle_http_error(err: HTTPException):
    if err.code == 404:
        return _error("Route not found", 404)
    return _error(err.description or err.name, err.code or 500)


@server.errorhandler(Exception)
def handle_unexpected(err: Exception):
    logger.exception("Unhandled error: %s", err)
    return _error("Internal server error", 500)


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def validate_next_problem(payload: dict) -> dict:
    missing = [name for name in NEXT_PROBLEM_FIELDS if payload.get(name) is None]
    if missing:
        raise ValidationError(f"Missing required parameters: {', '.join(missing)}")

    difficulty = str(payload["difficulty"]).strip().lower()
    if difficulty not in BENCHMARK_MINUTES:
        raise ValidationError(
            f"Invalid difficulty '{payload['difficulty']}'. Expected one of: {', '.join(BENCHMARK_MINUTES)}"
        )

    time_taken = payload["time_taken"]
    if isinstance(time_taken, bool) or not isinstance(time_taken, int) or time_taken < 0:
        raise ValidationError("time_taken must be a non-negative integer number of minutes")

    return {
        "last_problem": str(payload["last_problem"]),
        "difficulty": difficulty,
        "time_taken": time_taken,
        "topic": str(payload["topic"]),
    }


def validate_template_request(payload: dict) -> tuple[str, dict]:
    template = payload.get("template")
    if not template or template not in PROMPT_TEMPLATES:
        raise ValidationError(f"Invalid template. Available templates: {', '.join(available_templates())}")
    parameters = payload.get("parameters")
    if not isinstance(parameters, dict):
        raise ValidationError("Parameters must be provided as an object")
    return template, parameters


@server.route("/health", methods=["GET"])
def health():
    return jsonify({
        "success": True,
        "status": "healthy",
        "message": "Server is running",
        "timestamp": _now_iso(),
    })


@server.route("/api/next-problem", methods=["POST"])
def next_problem():
    params = validate_next_problem(_json_body())

    prompt = build_prompt("next_problem", params)
    result = performance.record(params["topic"], params["difficulty"], params["time_taken"])
    prompt = f"{prompt}\n{result.prompt_note()}"

    reply = gemini.generate_text(prompt)

    suggestion = parse_suggestion(reply)
    missing = suggestion.missing_fields()
    if missing:
        logger.warning("Model reply is missing fields: %s", ", ".join(missing))
    suggestion = complete_suggestion(suggestion)

    return jsonify({
        "success": True,
        "problem": suggestion.to_dict(),
        "performance": result.to_dict(),
    })


@server.route("/api/ask-gemini", methods=["POST"])
def ask_gemini():
    template, parameters = validate_template_request(_json_body())

    prompt = build_prompt(template, parameters)
    reply = gemini.generate_text(prompt)

    return jsonify({
        "success": True,
        "data": {
            "template": template,
            "parameters": parameters,
            "response": reply,
            "timestamp": _now_iso(),
        },
    })


if __name__ == '__main__':
    configure_logging()
    logger.info("Environment status: %s", settings.status())
    server.run(port=settings.port)
