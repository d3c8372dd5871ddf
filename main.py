import argparse
import asyncio
import json
import sys

from loguru import logger

from base.config import load_config
from base.conversation import InMemoryConversation
from core.initialization import build_pipeline
from core.log_helpers import configure_logging


def run_serve(config):
    """Run the tool API on the configured host/port."""
    import uvicorn

    from core.app import create_app

    app = create_app(build_pipeline(config))
    uvicorn.run(app, host=config.host, port=config.port)


def run_call(config, request_text: str, messages_file: str = None) -> int:
    """Run one tool request (JSON) and print the response envelope. Returns the process exit code."""
    conversation = None
    if messages_file:
        with open(messages_file, "r", encoding="utf-8") as f:
            conversation = InMemoryConversation.from_payload(json.load(f))
    pipeline = build_pipeline(config)
    envelope = asyncio.run(pipeline.process_tool_request(request_text, conversation=conversation))
    print(json.dumps(envelope, indent=2, default=str))
    return 0 if envelope.get("success") else 1


def run_tools(config) -> int:
    """Print the function-calling schema for enabled tools."""
    pipeline = build_pipeline(config)
    print(json.dumps(pipeline.tool_schemas(), indent=2))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="MemberPress AI assistant: tool pipeline")
    parser.add_argument("--config", default=None, help="Path to assistant.yml (default: MPAI_CONFIG or config/assistant.yml)")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the HTTP tool API (default)")
    call_parser = sub.add_parser("call", help="Run one tool request and print the response envelope")
    call_parser.add_argument("request", help='Tool request as JSON, e.g. \'{"name": "memberpress_info", "parameters": {"type": "summary"}}\'')
    call_parser.add_argument("--messages", default=None, help="JSON file with conversation messages [{role, content, markers}]")
    sub.add_parser("tools", help="Print the function-calling schema of enabled tools")
    args = parser.parse_args()
    try:
        config = load_config(args.config)
        configure_logging(config)
        if args.command == "call":
            sys.exit(run_call(config, args.request, args.messages))
        elif args.command == "tools":
            sys.exit(run_tools(config))
        else:
            run_serve(config)
    except Exception as e:
        logger.exception(e)
        sys.exit(1)
