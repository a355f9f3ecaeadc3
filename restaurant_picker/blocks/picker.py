"""Block Kit builders for the picker messages and modals."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from restaurant_picker.models.records import ConversationRecord, Restaurant, results_order, win_rate
from restaurant_picker.state.pick_session import PickSession

# callback / action ids
CB_NEW = "pick_restaurant-new"
CB_EDIT = "pick_restaurant-edit"
CB_LIST = "pick_restaurant-list"
CB_OVERWRITE = "pick_restaurant-pick_overwrite"
CB_END = "pick_restaurant-pick_end"
ACTION_LIST = "pick_restaurant_list-action"
ACTION_VOTE = "pick_restaurant_pick_vote-action"
ACTION_END = "pick_restaurant_pick_end-action"
ACTION_ADD_CHOICE = "pick_restaurant_pick_add_choice-action"
NAME_BLOCK = "restaurant_name-block"
NAME_ACTION = "restaurant_name-action"
WEIGHT_BLOCK = "restaurant_weight-block"
WEIGHT_ACTION = "restaurant_weight-action"


def _plain(text: str) -> Dict[str, Any]:
    return {"type": "plain_text", "text": text, "emoji": True}


def _section(text: str, **extra) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}, **extra}


# ===== ヘルプ / ウェルカム =====

def help_text(command: str) -> str:
    return (
        "Available _*Slash Commands*_:\n"
        f"*`{command} list`*: :ledger: Lists all the added restaurants in a modal\n"
        f"*`{command} new`*: :memo: Opens a modal for adding new restaurants\n"
        f"*`{command} pick <N>`*: :game_die: Picks *N* items _(if exists)_ and let everyone vote _(anonymously)_\n"
        f"*`{command} help`*: :information_source: Shows this message _(just for you :smirk:)_"
    )


def help_message(command: str, intro: str = "Thanks for using the *Restaurant Picker*!") -> Tuple[str, List[Dict]]:
    body = help_text(command)
    return f"{intro}\n\n{body}", [_section(intro), _section(body)]


def welcome_message(command: str) -> Tuple[str, List[Dict]]:
    return help_message(
        command,
        intro=(
            "Welcome to the *Restaurant Picker*!\n\n"
            "Looks like you haven't added any restaurant, maybe let's do that first? :wink:"
        ),
    )


# ===== 投票メッセージ =====

def pick_message(session: PickSession) -> Tuple[str, List[Dict]]:
    """Fallback text and blocks for a session message."""
    shown = session.revealed
    result = session.tally()
    text = "Pick a restaurant from one of [" + ", ".join(f'"{c.name}"' for c in shown) + "]"

    blocks: List[Dict] = [_section(":game_die: *Where shall we eat?*")]
    if session.is_ended:
        ender = f"<@{session.ended_by}>" if session.ended_by else "an unknown user"
        blocks.append(_section(
            f"The vote has been ended by {ender}! There are *{result.total_votes}* votes in total. "
            "Check the results below."
        ))
    else:
        blocks.append(_section(
            "Vote for your favourite below. You can change your vote until the vote ends.",
            accessory={
                "type": "button",
                "style": "danger",
                "text": _plain("End Vote"),
                "action_id": ACTION_END,
                "value": "end_vote",
            },
        ))
    blocks.append({"type": "divider"})

    for c in shown:
        mark = ":white_check_mark: " if session.is_ended and c.id in session.winners else ""
        row = _section(f"{mark}:knife_fork_plate: *{c.name}*", block_id=f"restaurant_{c.id}-block")
        if not session.is_ended:
            row["accessory"] = {
                "type": "button",
                "style": "primary",
                "text": _plain("Vote"),
                "action_id": ACTION_VOTE,
                "value": c.id,
            }
        blocks.append(row)
        if session.is_ended:
            blocks.append({
                "type": "context",
                "block_id": f"votes_{c.id}-block",
                "elements": [{"type": "mrkdwn", "text": f"*{len(c.votes)}* vote(s)"}],
            })

    blocks.append({"type": "divider"})
    if not session.is_ended:
        blocks.append({
            "type": "actions",
            "elements": [{
                "type": "button",
                "text": _plain(":heavy_plus_sign: Add Choice"),
                "action_id": ACTION_ADD_CHOICE,
                "value": "add_choice",
            }],
        })
    return text, blocks


# ===== モーダル =====

def list_modal(record: ConversationRecord) -> Dict[str, Any]:
    blocks: List[Dict] = []
    for r in results_order(record.list):
        blocks.append(_section(
            f":knife_fork_plate: *{r.name}*",
            block_id=r.id,
            accessory={
                "type": "overflow",
                "confirm": {
                    "title": _plain("Are you sure?"),
                    "text": {
                        "type": "mrkdwn",
                        "text": f"You are going to edit/remove *{r.name}*!\nPlease confirm the action.",
                    },
                    "confirm": _plain("Continue"),
                    "deny": _plain("Cancel"),
                    "style": "danger",
                },
                "options": [
                    {"text": _plain(":pencil2:    Edit"), "value": "edit"},
                    {"text": _plain(":x:    Remove"), "value": "remove"},
                ],
                "action_id": ACTION_LIST,
            },
        ))
        blocks.append({
            "type": "context",
            "block_id": f"context_{r.id}",
            "elements": [
                {"type": "mrkdwn", "text": f":anchor: Weight: *{r.weight}*"},
                {"type": "mrkdwn", "text": f":bulb: Shown Count: *{r.shown_count}*"},
                {"type": "mrkdwn", "text": f":100: Win Rate: *{win_rate(r)}%*"},
            ],
        })
    if not blocks:
        blocks.append(_section("No restaurant has been added yet."))

    return {
        "type": "modal",
        "callback_id": CB_LIST,
        "title": _plain("Restaurant List"),
        "close": _plain("Close"),
        "private_metadata": json.dumps({"conversation": record.conversation_id, "data_ts": record.ts}),
        "blocks": blocks,
    }


def restaurant_modal(
    conversation: str,
    restaurant: Optional[Restaurant] = None,
    data_ts: Optional[int] = None,
    list_view: Optional[str] = None,
) -> Dict[str, Any]:
    """Add modal, or edit modal when ``restaurant`` is given."""
    name_el: Dict[str, Any] = {
        "type": "plain_text_input",
        "action_id": NAME_ACTION,
        "placeholder": _plain("Name of Restaurant"),
        "min_length": 2,
        "max_length": 30,
    }
    weight_el: Dict[str, Any] = {
        "type": "number_input",
        "action_id": WEIGHT_ACTION,
        "is_decimal_allowed": False,
        "placeholder": _plain("Weight (0 [disabled] - 99)"),
        "initial_value": "50",
        "min_value": "0",
        "max_value": "99",
    }
    meta: Dict[str, Any] = {"conversation": conversation}
    if restaurant is None:
        name_el["focus_on_load"] = True
        title, callback_id = "Add New Restaurant", CB_NEW
    else:
        name_el["initial_value"] = restaurant.name
        weight_el["initial_value"] = str(restaurant.weight)
        weight_el["focus_on_load"] = True
        title, callback_id = "Edit Restaurant", CB_EDIT
        meta.update({"restaurant_id": restaurant.id, "data_ts": data_ts, "list_view": list_view})

    return {
        "type": "modal",
        "callback_id": callback_id,
        "title": _plain(title),
        "close": _plain("Cancel"),
        "submit": _plain("Save"),
        "private_metadata": json.dumps(meta),
        "blocks": [
            {"type": "input", "block_id": NAME_BLOCK, "element": name_el, "label": _plain("Name")},
            {"type": "input", "block_id": WEIGHT_BLOCK, "element": weight_el, "label": _plain("Weight")},
        ],
    }


def confirm_modal(callback_id: str, title: str, text: str, submit: str, meta: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "modal",
        "callback_id": callback_id,
        "title": _plain(title),
        "close": _plain("Cancel"),
        "submit": _plain(submit),
        "private_metadata": json.dumps(meta),
        "blocks": [_section(text)],
    }


def overwrite_modal(meta: Dict[str, Any]) -> Dict[str, Any]:
    return confirm_modal(
        CB_OVERWRITE, "Change Vote",
        "You have already voted. Do you want to replace your vote?", "Replace", meta,
    )


def end_modal(meta: Dict[str, Any]) -> Dict[str, Any]:
    return confirm_modal(
        CB_END, "End Vote",
        "Are you sure you want to end the vote? This cannot be undone.", "End Vote", meta,
    )
