"""Restaurant Picker Slack app (socket mode).

State lives in channel bookmarks and message metadata, so restarting the
process loses nothing.
"""

import logging
import os
import sys

from dotenv import load_dotenv
from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from restaurant_picker.config import load_settings, missing_env
from restaurant_picker.flows.picker_flow import register_picker_flow
from restaurant_picker.logging_setup import setup_logging
from restaurant_picker.services.picker import PickerService
from restaurant_picker.services.slack_gateway import SlackGateway
from restaurant_picker.storage import RecordStore

load_dotenv()

missing = missing_env(os.environ)
if missing:
    sys.stderr.write(f"[ERROR] Missing environment variables: {', '.join(missing)}\n")
    sys.exit(1)

settings = load_settings(os.environ)
setup_logging(settings.log_level)

app = App(token=settings.bot_token)
gateway = SlackGateway(app.client)
service = PickerService(RecordStore(gateway, settings), gateway, settings)
register_picker_flow(app, service, settings)


if __name__ == "__main__":
    logging.getLogger(__name__).info("Starting %s", settings.app_name)
    handler = SocketModeHandler(app, settings.app_token)
    handler.start()
