"""Tests for the Omnivore GraphQL client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from src.omnivore import queries
from src.omnivore.client import (
    Article,
    GraphQLError,
    OmnivoreClient,
    OmnivoreTransportError,
)
from tests.conftest import (
    ADD_LABEL_OK,
    CREATE_LABEL_OK,
    make_graphql_response,
    mock_async_client,
)

ENDPOINT = "https://omnivore.test/api/graphql"


def _client() -> OmnivoreClient:
    return OmnivoreClient("raw-key", endpoint=ENDPOINT)


class TestExecute:
    @pytest.mark.asyncio
    async def test_sends_raw_authorization_header(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(data=CREATE_LABEL_OK)

            await _client().create_label("uuid:abc", "#123456", "desc")

            mock_client_cls.assert_called_once_with(verify=True)
            args, kwargs = mock_client.post.call_args
            assert args[0] == ENDPOINT
            assert kwargs["headers"]["Authorization"] == "raw-key"
            assert kwargs["headers"]["Content-Type"] == "application/json"
            assert kwargs["json"]["query"] == queries.CREATE_LABEL
            assert kwargs["json"]["variables"] == {
                "input": {"name": "uuid:abc", "color": "#123456", "description": "desc"},
            }

    @pytest.mark.asyncio
    async def test_errors_field_raises_graphql_error(self) -> None:
        errors = [{"message": "Unauthorized"}]
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"createLabel": None}, errors=errors,
            )

            with pytest.raises(GraphQLError) as exc_info:
                await _client().create_label("uuid:abc")

        assert exc_info.value.errors == errors
        assert "Unauthorized" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_error_codes_union_raises_graphql_error(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"addLabelToHighlight": {"errorCodes": ["NOT_FOUND"]}},
            )

            with pytest.raises(GraphQLError) as exc_info:
                await _client().add_label_to_highlight("h1", "uuid:abc")

        assert exc_info.value.errors == ["NOT_FOUND"]
        assert exc_info.value.operation == "addLabelToHighlight"

    @pytest.mark.asyncio
    async def test_non_json_response_is_transport_error(self) -> None:
        resp = MagicMock(status_code=502)
        resp.json.side_effect = json.JSONDecodeError("bad", "<html>", 0)
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = resp

            with pytest.raises(OmnivoreTransportError, match="non-JSON"):
                await _client().add_label_to_highlight("h1", "uuid:abc")

    @pytest.mark.asyncio
    async def test_connect_error_is_transport_error(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.side_effect = httpx.ConnectError("refused")

            with pytest.raises(OmnivoreTransportError):
                await _client().add_label_to_highlight("h1", "uuid:abc")

    @pytest.mark.asyncio
    async def test_missing_data_raises_graphql_error(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response()

            with pytest.raises(GraphQLError):
                await _client().add_label_to_highlight("h1", "uuid:abc")


class TestMutations:
    @pytest.mark.asyncio
    async def test_add_label_to_highlight_variables(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(data=ADD_LABEL_OK)

            highlight = await _client().add_label_to_highlight("h1", "uuid:abc")

        assert highlight["id"] == "h1"
        sent = mock_client.post.call_args[1]["json"]
        assert sent["variables"] == {"input": {"highlightId": "h1", "label": "uuid:abc"}}

    @pytest.mark.asyncio
    async def test_set_labels_by_id(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"setLabelsForHighlight": {"labels": [{"id": "l1"}]}},
            )

            labels = await _client().set_labels_for_highlight("h1", label_ids=["l1"])

        assert labels == [{"id": "l1"}]
        sent = mock_client.post.call_args[1]["json"]
        assert sent["variables"] == {"input": {"highlightId": "h1", "labelIds": ["l1"]}}

    @pytest.mark.asyncio
    async def test_set_labels_by_object(self) -> None:
        label = {"name": "uuid:abc", "color": "#000000"}
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"setLabelsForHighlight": {"labels": [label]}},
            )

            await _client().set_labels_for_highlight("h1", labels=[label])

        sent = mock_client.post.call_args[1]["json"]
        assert sent["variables"]["input"]["labels"] == [label]
        assert "labelIds" not in sent["variables"]["input"]

    @pytest.mark.asyncio
    async def test_set_labels_requires_exactly_one_form(self) -> None:
        with pytest.raises(ValueError):
            await _client().set_labels_for_highlight("h1")
        with pytest.raises(ValueError):
            await _client().set_labels_for_highlight("h1", labels=[], label_ids=[])

    @pytest.mark.asyncio
    async def test_get_article_parses_fields(self) -> None:
        article = {
            "id": "a1",
            "title": "Title",
            "content": "body",
            "labels": [{"name": "Summarize", "description": "Be brief"}],
            "highlights": [{"id": "n1", "type": "NOTE"}],
        }
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"article": {"article": article}},
            )

            result = await _client().get_article("me", "a1")

        assert result.id == "a1"
        assert result.note_highlight() == {"id": "n1", "type": "NOTE"}
        assert result.label_description("summarize") == "Be brief"
        sent = mock_client.post.call_args[1]["json"]
        assert sent["variables"] == {"username": "me", "slug": "a1", "format": "markdown"}

    @pytest.mark.asyncio
    async def test_create_highlight_sends_note_input(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"createHighlight": {"highlight": {"id": "n1", "type": "NOTE"}}},
            )

            created = await _client().create_highlight("a1", "summary")

        assert created["id"] == "n1"
        sent_input = mock_client.post.call_args[1]["json"]["variables"]["input"]
        assert sent_input["articleId"] == "a1"
        assert sent_input["type"] == "NOTE"
        assert sent_input["annotation"] == "summary"
        assert len(sent_input["shortId"]) == 8

    @pytest.mark.asyncio
    async def test_update_highlight_variables(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"updateHighlight": {"highlight": {"id": "n1"}}},
            )

            await _client().update_highlight("n1", "new text")

        sent = mock_client.post.call_args[1]["json"]
        assert sent["variables"] == {"input": {"highlightId": "n1", "annotation": "new text"}}

    @pytest.mark.asyncio
    async def test_create_highlight_uses_given_id(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(
                data={"createHighlight": {"highlight": {"id": "fixed-id-0001"}}},
            )

            await _client().create_highlight("a1", "summary", highlight_id="fixed-id-0001")

        sent_input = mock_client.post.call_args[1]["json"]["variables"]["input"]
        assert sent_input["id"] == "fixed-id-0001"
        assert sent_input["shortId"] == "fixedid0"

    @pytest.mark.asyncio
    async def test_find_label_matches_exact_name(self) -> None:
        with patch("src.omnivore.client.httpx.AsyncClient") as mock_client_cls:
            mock_client = mock_async_client(mock_client_cls)
            mock_client.post.return_value = make_graphql_response(data={"labels": {"labels": [
                {"id": "l1", "name": "uuid:other"},
                {"id": "l2", "name": "uuid:wanted"},
            ]}})

            found = await _client().find_label("uuid:wanted")
            missing = await _client().find_label("uuid:absent")

        assert found == {"id": "l2", "name": "uuid:wanted"}
        assert missing is None
        assert mock_client.post.call_args[1]["json"]["query"] == queries.LABELS


class TestArticle:
    def test_note_highlight_absent(self) -> None:
        article = Article(id="a1", title="", content="", highlights=[{"type": "HIGHLIGHT"}])
        assert article.note_highlight() is None

    def test_label_description_missing(self) -> None:
        article = Article(id="a1", title="", content="", labels=[{"name": "x"}])
        assert article.label_description("x") is None
        assert article.label_description("y") is None


class TestGraphQLErrorCodes:
    def test_matches_error_codes_entry(self) -> None:
        exc = GraphQLError(["LABEL_ALREADY_EXISTS"], "createLabel")
        assert exc.has_code("LABEL_ALREADY_EXISTS")
        assert not exc.has_code("ALREADY_EXISTS")

    def test_matches_extensions_code(self) -> None:
        exc = GraphQLError([{"message": "dup", "extensions": {"code": "ALREADY_EXISTS"}}])
        assert exc.has_code("ALREADY_EXISTS")

    def test_non_list_errors_never_match(self) -> None:
        assert not GraphQLError("boom").has_code("boom")
