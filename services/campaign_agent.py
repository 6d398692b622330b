"""
Autonomous traffic campaign agent.

Drives a bounded tool-calling conversation with the content provider for one
website. Every executed action is reported through `on_step(step, asset)`
in call order; the caller owns accumulation and persistence.

Terminal states:
  COMPLETED  the model called finish_campaign
  TIMED_OUT  the turn budget ran out first (partial results stand)
  FAILED     a provider round-trip raised
  CANCELLED  the cancel event was set between turns
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from core.campaign_actions import CampaignAction, FinishCampaign, parse_action, tool_catalog
from core.config import campaign_prompts as prompts
from core.provider import ContentProvider, ToolCall, ToolResult
from core.records import CampaignAsset, CampaignStep, StepStatus, Website, epoch_ms, new_id, utc_now
from services.asset_synthesizer import synthesize_asset

logger = logging.getLogger(__name__)

MAX_TURNS = int(os.environ.get("CAMPAIGN_MAX_TURNS", "12"))
MAX_PARALLEL_TOOLS = int(os.environ.get("CAMPAIGN_MAX_PARALLEL_TOOLS", "4"))

StepCallback = Callable[[CampaignStep, Optional[CampaignAsset]], None]


class AgentState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class _Outcome:
    step: CampaignStep
    asset: Optional[CampaignAsset]
    result: ToolResult


def _step(action: str, detail: str, status: StepStatus) -> CampaignStep:
    return CampaignStep(id=new_id(), action=action, detail=detail, timestamp=epoch_ms(utc_now()), status=status)


class CampaignAgent:
    def __init__(
        self,
        website: Website,
        on_step: StepCallback,
        provider: Optional[ContentProvider] = None,
        max_turns: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if provider is None:
            from services.gemini_service import gemini_service as provider
        self.website = website
        self.on_step = on_step
        self.provider = provider
        self.max_turns = max_turns or MAX_TURNS
        self.cancel_event = cancel_event
        self.state = AgentState.NOT_STARTED
        self.turns_used = 0

    def _system_prompt(self) -> str:
        return prompts.CAMPAIGN_SYSTEM_PROMPT.format(
            url=self.website.url,
            name=self.website.name,
            niche=self.website.niche,
            audience=self.website.target_audience_profile,
            tool_names=", ".join(t["name"] for t in tool_catalog()),
        )

    def run(self) -> AgentState:
        self.state = AgentState.RUNNING
        try:
            session = self.provider.start_tool_session(self._system_prompt(), tool_catalog())
        except Exception:
            logger.exception("Campaign session could not start for %s", self.website.url)
            self.state = AgentState.FAILED
            return self.state

        message = prompts.OPENING_DIRECTIVE
        pending: Optional[List[ToolResult]] = None

        for turn in range(1, self.max_turns + 1):
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info("Campaign for %s cancelled before turn %s", self.website.url, turn)
                self.state = AgentState.CANCELLED
                return self.state
            try:
                reply = session.send_tool_results(pending) if pending else session.send_message(message)
            except Exception:
                logger.exception("Campaign turn %s failed for %s", turn, self.website.url)
                self.state = AgentState.FAILED
                return self.state
            self.turns_used = turn

            if not reply.tool_calls:
                pending = None
                message = prompts.CONTINUE_DIRECTIVE
                continue

            parsed = [(call, self._parse(call)) for call in reply.tool_calls]
            finish = next((a for _, a in parsed if isinstance(a, FinishCampaign)), None)
            work = [(c, a) for c, a in parsed if not isinstance(a, FinishCampaign)]

            outcomes = self._dispatch(work)
            for outcome in outcomes:
                self.on_step(outcome.step, outcome.asset)

            if finish is not None:
                self.on_step(_step(finish.label, finish.detail(), StepStatus.SUCCESS), None)
                self.state = AgentState.COMPLETED
                return self.state

            pending = [o.result for o in outcomes]
            message = prompts.CONTINUE_DIRECTIVE

        logger.info("Campaign for %s used its %s-turn budget", self.website.url, self.max_turns)
        self.state = AgentState.TIMED_OUT
        return self.state

    def _dispatch(self, work: Sequence[Tuple[ToolCall, Union[CampaignAction, _Outcome]]]) -> List[_Outcome]:
        """Synthesize one turn's calls; results come back in call order."""
        if len(work) <= 1:
            return [self._execute(call, action) for call, action in work]
        with ThreadPoolExecutor(max_workers=min(len(work), MAX_PARALLEL_TOOLS)) as pool:
            return list(pool.map(lambda item: self._execute(*item), work))

    def _parse(self, call: ToolCall) -> Union[CampaignAction, _Outcome]:
        try:
            return parse_action(call.name, call.args)
        except Exception as e:
            logger.exception("Tool %s sent unusable arguments for %s", call.name, self.website.url)
            return _Outcome(
                step=_step(call.name or "Unknown Tool", f"Rejected arguments ({e})", StepStatus.ERROR),
                asset=None,
                result=ToolResult(call=call, response={"error": f"Invalid arguments: {e}"}),
            )

    def _execute(self, call: ToolCall, action: Union[CampaignAction, _Outcome]) -> _Outcome:
        if isinstance(action, _Outcome):
            return action
        logger.info("Agent calling tool: %s", call.name)
        try:
            asset = synthesize_asset(action, self.website, self.provider)
        except Exception as e:
            logger.exception("Tool %s failed for %s", call.name, self.website.url)
            return _Outcome(
                step=_step(action.label, f"{action.detail()} (failed: {e})", StepStatus.ERROR),
                asset=None,
                result=ToolResult(call=call, response={"error": f"Execution failed: {e}"}),
            )
        return _Outcome(
            step=_step(action.label, action.detail(), StepStatus.SUCCESS),
            asset=asset,
            result=ToolResult(
                call=call,
                response={"result": "Success: Asset created.", "assetId": asset.id, "url": asset.url},
            ),
        )


def run_traffic_campaign(
    website: Website,
    on_step: StepCallback,
    provider: Optional[ContentProvider] = None,
    max_turns: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> AgentState:
    return CampaignAgent(website, on_step, provider, max_turns, cancel_event).run()
