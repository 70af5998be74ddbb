from __future__ import annotations

import pytest

from mctx import conversation


def test_conversation_builds_role_tagged_messages():
    result = conversation(
        lambda user, ai: [
            user.say("What is in this image?"),
            user.attach("aGVsbG8=", "image/png"),
            ai.say("A diagram."),
            ai.embed("docs://guide/intro"),
        ]
    )

    assert result["messages"] == [
        {"role": "user", "content": {"type": "text", "text": "What is in this image?"}},
        {"role": "user", "content": {"type": "image", "data": "aGVsbG8=", "mimeType": "image/png"}},
        {"role": "assistant", "content": {"type": "text", "text": "A diagram."}},
        {
            "role": "assistant",
            "content": {
                "type": "resource",
                "resource": {"uri": "docs://guide/intro", "text": "[embedded]"},
            },
        },
    ]


def test_conversation_validates_builder_and_arguments():
    with pytest.raises(TypeError):
        conversation("not callable")
    with pytest.raises(TypeError, match="must return a list"):
        conversation(lambda user, ai: user.say("hi"))
    with pytest.raises(TypeError):
        conversation(lambda user, ai: [user.say(42)])
    with pytest.raises(ValueError, match="mime_type"):
        conversation(lambda user, ai: [user.attach("aGk=", "")])
