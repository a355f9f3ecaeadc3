# restaurant_picker/flows/picker_flow.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from slack_bolt import App

from restaurant_picker.blocks.picker import (
    ACTION_ADD_CHOICE,
    ACTION_END,
    ACTION_LIST,
    ACTION_VOTE,
    CB_EDIT,
    CB_END,
    CB_NEW,
    CB_OVERWRITE,
    NAME_ACTION,
    NAME_BLOCK,
    WEIGHT_ACTION,
    WEIGHT_BLOCK,
    end_modal,
    help_message,
    list_modal,
    overwrite_modal,
    restaurant_modal,
)
from restaurant_picker.config import Settings
from restaurant_picker.errors import ConflictError, InvalidInputError, PickerError, SessionClosedError
from restaurant_picker.models.events import (
    AddRestaurant,
    EditRestaurant,
    EndRequested,
    ListRequested,
    NewRestaurantRequested,
    RemoveRestaurant,
    RevealNextRequested,
    UnknownEvent,
    VoteCast,
    parse_command,
)
from restaurant_picker.services.picker import PickerService, VoteStatus

GENERIC_FAILURE = "Something went wrong, please try again later. :bow:"
VOTE_ENDED = "This vote has already ended."


# ===== ペイロード補助 =====

def _meta(view: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return json.loads(view.get("private_metadata") or "{}")
    except ValueError:
        return {}


def _input_value(view: Dict[str, Any], block_id: str, action_id: str) -> Optional[str]:
    block = view.get("state", {}).get("values", {}).get(block_id, {})
    return (block.get(action_id) or {}).get("value")


def _message_ref(body: Dict[str, Any]) -> tuple:
    """(channel, message ts) of the message an action was clicked on."""
    channel = (body.get("channel") or {}).get("id") or (body.get("container") or {}).get("channel_id")
    ts = (body.get("message") or {}).get("ts") or (body.get("container") or {}).get("message_ts")
    return channel, ts


def field_errors(e: PickerError) -> Optional[Dict[str, str]]:
    """Modal field errors for user-correctable failures, else None."""
    if isinstance(e, (InvalidInputError, ConflictError)) and e.field:
        return {e.field: str(e)}
    return None


# ===== メイン登録 =====

def register_picker_flow(app: App, service: PickerService, settings: Settings) -> None:

    def _tell(client, channel: str, user: str, text: str) -> None:
        client.chat_postEphemeral(channel=channel, user=user, text=text)

    # /restaurant_picker <help|list|new|pick N>
    @app.command(settings.command)
    def on_command(ack, body, client, logger):
        ack()
        channel_id = body.get("channel_id")
        user_id = body.get("user_id")
        try:
            event = parse_command(body.get("text", ""), channel_id, user_id, body.get("trigger_id"))
            if isinstance(event, UnknownEvent):
                text, blocks = help_message(
                    settings.command,
                    intro=f"{event.kind} is not a valid command. You can use `help` to check available commands.",
                )
                client.chat_postEphemeral(channel=channel_id, user=user_id, text=text, blocks=blocks)
            elif isinstance(event, ListRequested):
                record, _ = service.list_restaurants(channel_id)
                client.views_open(trigger_id=event.trigger_id, view=list_modal(record))
            elif isinstance(event, NewRestaurantRequested):
                service.ensure_record(channel_id)
                client.views_open(trigger_id=event.trigger_id, view=restaurant_modal(channel_id))
            else:
                service.dispatch(event)
        except InvalidInputError as e:
            text, blocks = help_message(settings.command, intro=f"Invalid number of choices. {e}")
            client.chat_postEphemeral(channel=channel_id, user=user_id, text=text, blocks=blocks)
        except Exception as e:
            logger.exception(e)
            _tell(client, channel_id, user_id, GENERIC_FAILURE)

    # 追加モーダル submit
    @app.view(CB_NEW)
    def on_new(ack, body, view, logger):
        meta = _meta(view)
        try:
            service.dispatch(AddRestaurant(
                conversation=meta.get("conversation"),
                name=_input_value(view, NAME_BLOCK, NAME_ACTION),
                weight=_input_value(view, WEIGHT_BLOCK, WEIGHT_ACTION),
            ))
            ack()
        except PickerError as e:
            errors = field_errors(e)
            if errors:
                ack(response_action="errors", errors=errors)
                return
            logger.exception(e)
            ack(response_action="errors", errors={NAME_BLOCK: GENERIC_FAILURE})

    # 一覧モーダルの overflow（編集 / 削除）
    @app.action(ACTION_LIST)
    def on_list_action(ack, body, action, client, logger):
        ack()
        view = body.get("view") or {}
        meta = _meta(view)
        conversation = meta.get("conversation")
        restaurant_id = action.get("block_id")
        choice = (action.get("selected_option") or {}).get("value")
        try:
            if choice == "edit":
                record, _ = service.list_restaurants(conversation)
                restaurant = record.find(restaurant_id)
                if restaurant is None:
                    client.views_update(view_id=view.get("id"), view=list_modal(record))
                    return
                client.views_push(
                    trigger_id=body["trigger_id"],
                    view=restaurant_modal(
                        conversation, restaurant, data_ts=meta.get("data_ts", record.ts), list_view=view.get("id"),
                    ),
                )
            elif choice == "remove":
                service.dispatch(RemoveRestaurant(
                    conversation=conversation, restaurant_id=restaurant_id, observed_ts=meta.get("data_ts"),
                ))
                record, _ = service.list_restaurants(conversation)
                client.views_update(view_id=view.get("id"), view=list_modal(record))
        except ConflictError:
            record, _ = service.list_restaurants(conversation)
            client.views_update(view_id=view.get("id"), view=list_modal(record))
        except Exception as e:
            logger.exception(e)

    # 編集モーダル submit
    @app.view(CB_EDIT)
    def on_edit(ack, body, view, client, logger):
        meta = _meta(view)
        conversation = meta.get("conversation")
        try:
            service.dispatch(EditRestaurant(
                conversation=conversation,
                restaurant_id=meta.get("restaurant_id"),
                name=_input_value(view, NAME_BLOCK, NAME_ACTION),
                weight=_input_value(view, WEIGHT_BLOCK, WEIGHT_ACTION),
                observed_ts=meta.get("data_ts"),
            ))
        except PickerError as e:
            errors = field_errors(e)
            if errors is None:
                logger.exception(e)
                errors = {NAME_BLOCK: GENERIC_FAILURE}
            ack(response_action="errors", errors=errors)
            return
        ack()
        try:
            if meta.get("list_view"):
                record, _ = service.list_restaurants(conversation)
                client.views_update(view_id=meta["list_view"], view=list_modal(record))
        except Exception as e:
            logger.exception(e)

    # 投票
    @app.action(ACTION_VOTE)
    def on_vote(ack, body, action, client, logger):
        ack()
        channel, message_ts = _message_ref(body)
        user_id = body["user"]["id"]
        try:
            status = service.dispatch(VoteCast(
                conversation=channel, message_ts=message_ts, user_id=user_id, restaurant_id=action["value"],
            ))
            if status is VoteStatus.NEEDS_CONFIRMATION:
                client.views_open(trigger_id=body["trigger_id"], view=overwrite_modal({
                    "conversation": channel,
                    "message_ts": message_ts,
                    "restaurant_id": action["value"],
                }))
        except SessionClosedError:
            _tell(client, channel, user_id, VOTE_ENDED)
        except Exception as e:
            logger.exception(e)
            _tell(client, channel, user_id, GENERIC_FAILURE)

    # 投票の上書き確認 submit
    @app.view(CB_OVERWRITE)
    def on_overwrite(ack, body, view, client, logger):
        ack()
        meta = _meta(view)
        user_id = body["user"]["id"]
        try:
            service.dispatch(VoteCast(
                conversation=meta.get("conversation"),
                message_ts=meta.get("message_ts"),
                user_id=user_id,
                restaurant_id=meta.get("restaurant_id"),
                allow_overwrite=True,
            ))
        except SessionClosedError:
            _tell(client, meta.get("conversation"), user_id, VOTE_ENDED)
        except Exception as e:
            logger.exception(e)
            _tell(client, meta.get("conversation"), user_id, GENERIC_FAILURE)

    # 候補を1件追加
    @app.action(ACTION_ADD_CHOICE)
    def on_add_choice(ack, body, client, logger):
        ack()
        channel, message_ts = _message_ref(body)
        user_id = body["user"]["id"]
        try:
            choice = service.dispatch(RevealNextRequested(
                conversation=channel, message_ts=message_ts, user_id=user_id,
            ))
            if choice is None:
                _tell(client, channel, user_id, "All the restaurants have been listed already. :shrug:")
        except SessionClosedError:
            _tell(client, channel, user_id, VOTE_ENDED)
        except Exception as e:
            logger.exception(e)
            _tell(client, channel, user_id, GENERIC_FAILURE)

    # 投票終了（確認モーダル）
    @app.action(ACTION_END)
    def on_end(ack, body, client, logger):
        ack()
        channel, message_ts = _message_ref(body)
        try:
            client.views_open(trigger_id=body["trigger_id"], view=end_modal({
                "conversation": channel,
                "message_ts": message_ts,
            }))
        except Exception as e:
            logger.exception(e)

    @app.view(CB_END)
    def on_end_submit(ack, body, view, client, logger):
        ack()
        meta = _meta(view)
        user_id = body["user"]["id"]
        try:
            service.dispatch(EndRequested(
                conversation=meta.get("conversation"), message_ts=meta.get("message_ts"), ended_by=user_id,
            ))
        except Exception as e:
            logger.exception(e)
            _tell(client, meta.get("conversation"), user_id, GENERIC_FAILURE)
