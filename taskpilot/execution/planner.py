#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Plan generation with validation feedback.

``plan_task`` makes up to three attempts. The first asks for a fresh plan;
later attempts ask for an improved plan seeded with the previous attempt's
issues. When every attempt fails, a one-step fallback plan is returned so
the caller always has something to execute.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taskpilot import config, pricing
from taskpilot.debug_logger import get_logger, log_function
from taskpilot.exceptions import PlanParseError, PlanValidationError
from taskpilot.execution.validator import PlanValidator, extract_issues_from_errors
from taskpilot.llm.planner import Planner, PlannerResponse, parse_planner_content
from taskpilot.models.plan import Plan, PlanStep
from taskpilot.models.results import IssueSeverity, ValidationIssue
from taskpilot.tools.registry import ToolRegistry


JSON_FORMAT_BLOCK = """Respond in the following JSON format:
{{
  "plan": {{
    "steps": [
      {{
        "description": "Step description",
        "tool": "ToolName",
        "params": {{
          "param1": "value1",
          "param2": "value2"
        }}
      }}
    ]{extra}
  }}
}}
"""

REFERENCE_INSTRUCTIONS = """IMPORTANT: WHEN REFERENCING RESULTS FROM PREVIOUS STEPS IN YOUR PARAMETERS:
- To use content read by ReadFileTool, use "$PREVIOUS_STEP.content" as the parameter value
- To use another property from the previous result, use "$PREVIOUS_STEP.propertyName"
- To reference a specific step, use "$STEP[n].propertyName" where n is the step index (starting at 0)
NEVER use phrases like "content read in previous step" or "content from previous step", use the specific variables.

IMPORTANT FOR FINDFILETOOL:
- ALWAYS use recursive patterns: "**/*filename*" instead of "*filename*"
- Correct examples: "**/*breadcrumb*.ts", "**/package.json", "**/*component.ts"
- Patterns with ** search in all subdirectories
- Without ** only searches in the root directory

IMPORTANT FOR CODE ANALYSIS TOOLS:
- When using AnalyzeCodeTool, FixErrorTool, or any tool that analyzes code, ALWAYS pass BOTH the content and the path of the file.
- Correct example: { "content": "$STEP[0].content", "sourcePath": "$STEP[0].matches[0]", "focus": "ClassName" }
- The sourcePath parameter is MANDATORY for the tool to work correctly.
"""

INITIAL_PROMPT = """
You are a planning assistant for a coding agent. Your task is to break down the user's request into a series of steps that can be executed by the agent.

User request: "{user_input}"

Current context:
File: {file_path}
Language: {language}
Selected text: {selection}
{rules}
Available tools:
{tools}

{references}
Create a step-by-step plan to fulfill the user's request. For each step, specify:
1. A description of the step
2. The tool to use
3. Parameters for the tool

{json_format}"""

IMPROVED_PROMPT = """
You are an intelligent plan improver for a coding assistant. Your task is to create a better execution plan based on feedback from a previous attempt.

ORIGINAL USER REQUEST:
"{user_input}"

PREVIOUS ATTEMPT FAILED WITH THESE ISSUES:
{errors}

DETAILED FEEDBACK:
{issues}

AVAILABLE TOOLS:
{tools}

IMPROVEMENT GUIDELINES:
1. Address each issue mentioned in the feedback
2. Use the specific suggestions provided
3. Ensure proper variable references (use $STEP[n].matches[0] for FindFileTool results)
4. Use recursive patterns (**/*) for FindFileTool
5. Include both content and sourcePath for analysis tools
6. Create a more robust and reliable plan

This is attempt #{attempt}. Focus on fixing the specific issues identified.

{json_format}"""

INVALID_STRUCTURE_ERROR = "Plan structure is invalid - missing or invalid steps array"
FALLBACK_REASON = "All planning attempts failed"

_NUMBERED_RULE_RE = re.compile(r"^\d+\.")


@dataclass
class PlanningFeedback:
    """Why the previous planning attempt was rejected."""

    errors: List[str] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)


def extract_applied_rules(rules_text: Optional[str]) -> List[str]:
    """Bullet and heading lines of the ``## Rules`` section of a rules document."""
    if not rules_text:
        return []
    start = rules_text.find("## Rules")
    if start == -1:
        return []
    section = rules_text[start:]
    end = section.find("---\n", 4)
    if end != -1:
        section = section[:end]

    rules = []
    for line in section.splitlines():
        stripped = line.strip()
        if stripped.startswith(("- ", "* ", "### ", "## ")) or _NUMBERED_RULE_RE.match(stripped):
            rules.append(stripped)
    return rules


def determine_default_tool(user_input: str) -> str:
    lowered = user_input.lower()
    if "test" in lowered or "generar test" in lowered:
        return "GenerateTestTool"
    if "error" in lowered or "fix" in lowered:
        return "FixErrorTool"
    if "explain" in lowered or "explicar" in lowered:
        return "ExplainCodeTool"
    return "AnalyzeCodeTool"


def create_fallback_plan(user_input: str, context: Optional[Dict[str, Any]] = None) -> Plan:
    params = dict(context or {})
    params["input"] = user_input
    return Plan(
        steps=[PlanStep(
            description=f"Fallback: {user_input}",
            tool=determine_default_tool(user_input),
            params=params,
        )],
        is_fallback=True,
        fallback_reason=FALLBACK_REASON,
    )


class TaskPlanner:
    """Generates, validates and (re)generates plans for one user request."""

    def __init__(self, planner: Planner, registry: ToolRegistry, validator: PlanValidator,
                 max_attempts: Optional[int] = None):
        self.planner = planner
        self.registry = registry
        self.validator = validator
        self.max_attempts = max(1, max_attempts if max_attempts is not None else config.MAX_PLANNING_ATTEMPTS)

    @log_function("planner")
    def plan_task(self, user_input: str, context: Optional[Dict[str, Any]] = None) -> Plan:
        """Produce an accepted plan, or the fallback plan if every attempt fails."""
        debug_logger = get_logger()
        context = context or {}
        feedback: Optional[PlanningFeedback] = None

        for attempt in range(1, self.max_attempts + 1):
            final_attempt = attempt == self.max_attempts
            debug_logger.log_workflow_phase("planning", {"attempt": attempt, "max_attempts": self.max_attempts})

            try:
                if attempt == 1 or feedback is None:
                    plan = self.generate_initial_plan(user_input, context)
                else:
                    plan = self.generate_improved_plan(user_input, context, feedback, attempt)

                outcome = self.validator.validate(plan, user_input)
                if outcome.valid:
                    debug_logger.log("planner", "PLANNING_SUCCEEDED", {
                        "attempt": attempt,
                        "steps": len(outcome.plan.steps),
                        "optimized": bool(outcome.plan.validation_info and outcome.plan.validation_info.get("optimized")),
                    })
                    return outcome.plan

                if final_attempt:
                    raise PlanValidationError(
                        f"Plan validation failed after {self.max_attempts} attempts: {', '.join(outcome.errors)}",
                        outcome.errors,
                    )
                debug_logger.log("planner", "PLAN_REJECTED", {"attempt": attempt, "errors": outcome.errors}, "WARNING")
                feedback = PlanningFeedback(outcome.errors, extract_issues_from_errors(outcome.errors))

            except PlanParseError as e:
                debug_logger.log("planner", "PLAN_PARSE_ERROR", {"attempt": attempt, "error": str(e)}, "WARNING")
                if final_attempt:
                    break
                feedback = PlanningFeedback(
                    errors=[INVALID_STRUCTURE_ERROR],
                    issues=[ValidationIssue(
                        0,
                        IssueSeverity.HIGH,
                        "Plan must have a valid steps array",
                        "Generate a plan with the correct structure: { steps: [...] }",
                    )],
                )

            except Exception as e:
                debug_logger.log_error("planner", e, {"attempt": attempt})
                if final_attempt:
                    break
                feedback = PlanningFeedback(
                    errors=[str(e)],
                    issues=[ValidationIssue(
                        0,
                        IssueSeverity.HIGH,
                        f"Planning error: {e}",
                        "Review and fix the plan structure",
                    )],
                )

        debug_logger.log("planner", "FALLBACK_PLAN", {"input": user_input}, "WARNING")
        return create_fallback_plan(user_input, context)

    def build_initial_prompt(self, user_input: str, context: Dict[str, Any]) -> str:
        selection = context.get("selection") or context.get("selectedText")
        rules = context.get("rules")
        return INITIAL_PROMPT.format(
            user_input=user_input,
            file_path=context.get("filePath") or context.get("file_path") or "None",
            language=context.get("language") or "Unknown",
            selection=f"Yes (length: {len(selection)})" if selection else "None",
            rules=f"\nProject rules:\n{rules}\n" if rules else "",
            tools=self.registry.catalog_text(),
            references=REFERENCE_INSTRUCTIONS,
            json_format=JSON_FORMAT_BLOCK.format(extra=""),
        )

    def build_improved_prompt(self, user_input: str, feedback: PlanningFeedback, attempt: int) -> str:
        errors = "\n".join(f"{i}. {error}" for i, error in enumerate(feedback.errors, start=1))
        issues = "\n".join(
            f"Issue {i} ({issue.severity.value}): {issue.description}\n"
            f"Suggestion: {issue.suggestion or 'Not provided'}\n"
            f"Step affected: {issue.step_index + 1}\n"
            for i, issue in enumerate(feedback.issues, start=1)
        )
        extra = ',\n    "improvementReason": "explanation of how this addresses the previous issues"'
        return IMPROVED_PROMPT.format(
            user_input=user_input,
            errors=errors,
            issues=issues,
            tools=self.registry.catalog_text(),
            attempt=attempt,
            json_format=JSON_FORMAT_BLOCK.format(extra=extra),
        )

    def generate_initial_plan(self, user_input: str, context: Dict[str, Any]) -> Plan:
        """Ask for a fresh plan.

        Raises:
            PlanParseError: if no step list can be recovered from the answer
        """
        response = self.planner.generate(
            self.build_initial_prompt(user_input, context),
            max_tokens=1024,
            temperature=0.2,
            format="json",
            task_type="planning",
        )
        data = parse_planner_content(response.content)
        plan = self._plan_from_response(data)
        plan.applied_rules = extract_applied_rules(context.get("rules"))
        return self._attach_model_metadata(plan, response)

    def generate_improved_plan(self, user_input: str, context: Dict[str, Any],
                               feedback: PlanningFeedback, attempt: int) -> Plan:
        """Ask for a plan that addresses the previous attempt's issues.

        Raises:
            PlanParseError: if the answer does not contain ``plan.steps``
        """
        response = self.planner.generate(
            self.build_improved_prompt(user_input, feedback, attempt),
            max_tokens=1024,
            temperature=0.3,
            format="json",
            task_type="planning",
        )
        data = parse_planner_content(response.content)
        inner = data.get("plan") if isinstance(data, dict) else None
        if not isinstance(inner, dict) or not isinstance(inner.get("steps"), list):
            raise PlanParseError("Invalid improved plan structure", raw=data)

        plan = Plan.from_dict(inner)
        plan.improvement_attempt = attempt
        plan.addressed_issues = len(feedback.issues)
        plan.applied_rules = extract_applied_rules(context.get("rules"))
        get_logger().log("planner", "IMPROVED_PLAN", {
            "attempt": attempt,
            "steps": len(plan.steps),
            "improvement_reason": plan.improvement_reason or "Not provided",
        })
        return self._attach_model_metadata(plan, response)

    @staticmethod
    def _plan_from_response(data: Any) -> Plan:
        """``{"plan": {"steps": [...]}}``, else a bare step list, else ``{"steps": [...]}``."""
        if isinstance(data, dict):
            inner = data.get("plan")
            if isinstance(inner, dict) and isinstance(inner.get("steps"), list):
                return Plan.from_dict(inner)

        steps: Any = None
        if isinstance(data, list):
            steps = data
        elif isinstance(data, dict) and isinstance(data.get("steps"), list):
            steps = data["steps"]

        if steps:
            get_logger().log("planner", "PLAN_RECONSTRUCTED", {"steps": len(steps)}, "WARNING")
            return Plan.from_steps(steps)
        raise PlanParseError("Invalid plan structure", raw=data)

    @staticmethod
    def _attach_model_metadata(plan: Plan, response: PlannerResponse) -> Plan:
        plan.model_info = response.model_info or None
        plan.token_count = response.token_count or None
        breakdown = pricing.cost_from_plan(plan)
        if breakdown is not None:
            plan.model_cost = breakdown.to_dict()
        return plan
