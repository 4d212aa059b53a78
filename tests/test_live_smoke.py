from __future__ import annotations

import json
import os
from pathlib import Path

import anyio
import pytest

from upstage_mcp.config import UpstageSettings
from upstage_mcp.mcp import tools
from upstage_mcp.mcp.context import ToolContext


@pytest.mark.live
def test_classify_live_document(tmp_path: Path) -> None:
    document = os.getenv("UPSTAGE_LIVE_DOCUMENT")
    if not document:
        pytest.skip("UPSTAGE_LIVE_DOCUMENT is not set.")
    settings = UpstageSettings.from_env().model_copy(update={"output_base": tmp_path})
    context = ToolContext.from_settings(settings)
    payload = tools.ClassifyDocumentToolInput(file_path=document)

    text = anyio.run(lambda: tools.run_classify_document_tool(payload, context=context))

    output = json.loads(text)
    assert output["classification"]
    assert Path(output["metadata"]["result_saved_to"]).exists()
