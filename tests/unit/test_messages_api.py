from __future__ import annotations

import httpx
import pytest

from classifieds_core.application.exceptions import ServerError
from tests.conftest import BASE_TIME, ME, THEM, body_of, make_message, message_json, seed_credential


@pytest.mark.asyncio
async def test_send_message_posts_body_and_normalises_ids(core, backend, store):
    await seed_credential(store)
    reply = message_json(make_message(id="55", sender_id=ME, receiver_id=THEM, content="hi", product_id="44"))
    backend.route("POST", "/api/messages/", lambda r: httpx.Response(201, json=reply))

    message = await core.messages.send_message("hi", THEM, "44")

    assert body_of(backend.requests[0]) == {"content": "hi", "product_id": "44", "receiver_id": THEM}
    assert message.id == "55"
    assert message.sender_id == ME
    assert message.conversation_key == "1:2"
    assert not message.is_provisional


@pytest.mark.asyncio
async def test_new_messages_sends_since_as_epoch_millis(core, backend, store):
    await seed_credential(store)
    backend.route(
        "GET",
        f"/api/messages/new-messages/{THEM}",
        lambda r: httpx.Response(200, json=[message_json(make_message(id="7"))]),
    )

    messages = await core.messages.get_new_messages(THEM, since=BASE_TIME)

    assert backend.requests[0].url.params["since"] == "1714564800000"
    assert [m.id for m in messages] == ["7"]
    assert messages[0].created_at == BASE_TIME


@pytest.mark.asyncio
async def test_wrapped_lists_and_alternate_ids_are_accepted(core, backend, store):
    await seed_credential(store)
    payload = {
        "messages": [
            {
                "_id": "abc",
                "sender_id": 2,
                "receiver_id": 1,
                "content": "naive timestamp",
                "created_at": "2024-05-01T12:00:00",
            }
        ]
    }
    backend.route("GET", "/api/messages/conversation/1/2", lambda r: httpx.Response(200, json=payload))

    messages = await core.messages.fetch_conversation(ME, THEM, skip=50, limit=25)

    params = backend.requests[0].url.params
    assert (params["skip"], params["limit"]) == ("50", "25")
    assert messages[0].id == "abc"
    assert messages[0].created_at == BASE_TIME


@pytest.mark.asyncio
async def test_malformed_message_payload_is_a_server_error(core, backend, store):
    await seed_credential(store)
    backend.route("GET", "/api/messages/9", lambda r: httpx.Response(200, json={"id": 9}))

    with pytest.raises(ServerError):
        await core.messages.get_message("9")


@pytest.mark.asyncio
@pytest.mark.parametrize("payload, expected", [(3, 3), ({"unread_count": 4}, 4), ({"count": 5}, 5)])
async def test_unread_count_payload_forms(core, backend, store, payload, expected):
    await seed_credential(store)
    backend.route("GET", "/api/messages/unread/count", lambda r: httpx.Response(200, json=payload))

    assert await core.messages.unread_count() == expected


@pytest.mark.asyncio
async def test_chat_users_become_summaries(core, backend, store):
    await seed_credential(store)
    backend.route(
        "GET",
        "/api/messages/chat-users/",
        lambda r: httpx.Response(
            200,
            json=[
                {
                    "user_id": 2,
                    "name": "Ravi",
                    "unread_count": 1,
                    "last_message": {"content": "ok", "created_at": "2024-05-01T12:00:00Z"},
                },
                {"id": 3},
            ],
        ),
    )

    summaries = await core.messages.chat_users()

    assert [s.counterpart_id for s in summaries] == ["2", "3"]
    assert summaries[0].display_name == "Ravi"
    assert summaries[0].last_message_at == BASE_TIME
    assert summaries[1].last_message is None


@pytest.mark.asyncio
async def test_mark_as_read_and_delete(core, backend, store):
    await seed_credential(store)
    backend.route("PUT", "/api/messages/7/read", lambda r: httpx.Response(200, json={"ok": True}))
    backend.route("DELETE", "/api/messages/7", lambda r: httpx.Response(204))

    await core.messages.mark_as_read("7")
    await core.messages.delete_message("7")

    assert [(r.method, r.url.path) for r in backend.requests] == [
        ("PUT", "/api/messages/7/read"),
        ("DELETE", "/api/messages/7"),
    ]


@pytest.mark.asyncio
async def test_search_passes_query(core, backend, store):
    await seed_credential(store)
    backend.route("GET", "/api/messages/search/", lambda r: httpx.Response(200, json={"results": []}))

    assert await core.messages.search("bike") == []
    assert backend.requests[0].url.params["q"] == "bike"


@pytest.mark.asyncio
async def test_paged_history_endpoints(core, backend, store):
    await seed_credential(store)
    page = [message_json(make_message(id="3", product_id="44"))]
    backend.route("GET", "/api/messages/product/44", lambda r: httpx.Response(200, json=page))
    backend.route("GET", f"/api/messages/conversation-with/{THEM}", lambda r: httpx.Response(200, json={"data": page}))
    backend.route("PUT", f"/api/messages/conversation/{ME}/{THEM}/read", lambda r: httpx.Response(200))

    assert [m.id for m in await core.messages.product_messages("44", limit=10)] == ["3"]
    assert [m.product_id for m in await core.messages.conversation_with(THEM)] == ["44"]
    await core.messages.mark_conversation_as_read(ME, THEM)

    assert backend.requests[0].url.params["limit"] == "10"
    assert backend.requests[2].method == "PUT"
