from unittest.mock import Mock, patch

import requests

from scripts.trigger_embedding_queue import main, target_url


def test_target_url():
    assert target_url({}) == "http://localhost:3000/api/process-embedding-queue"
    assert target_url({"PORT": "8080"}) == "http://localhost:8080/api/process-embedding-queue"
    assert target_url({"NEXT_PUBLIC_VERCEL_URL": "jobping.vercel.app", "PORT": "8080"}) == \
        "https://jobping.vercel.app/api/process-embedding-queue"


def test_missing_secret_makes_no_request(capsys):
    with patch("scripts.trigger_embedding_queue.requests.post") as post:
        assert main({}) == 1
    post.assert_not_called()
    assert "CRITICAL: CRON_SECRET is not set" in capsys.readouterr().err


def test_successful_trigger(capsys):
    reply = Mock(ok=True, status_code=200, text='{"success": true}')
    with patch("scripts.trigger_embedding_queue.requests.post", return_value=reply) as post:
        assert main({"CRON_SECRET": "s3cret"}) == 0
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer s3cret"
    assert post.call_args.kwargs["timeout"] == 120
    assert "Embedding refresh trigger successful." in capsys.readouterr().out


def test_http_error_status():
    reply = Mock(ok=False, status_code=401, text='{"error": "Unauthorized"}')
    with patch("scripts.trigger_embedding_queue.requests.post", return_value=reply):
        assert main({"CRON_SECRET": "wrong"}) == 1


def test_network_error():
    with patch("scripts.trigger_embedding_queue.requests.post", side_effect=requests.ConnectionError("refused")):
        assert main({"CRON_SECRET": "s3cret"}) == 1
