"""
Step-by-step record of one utterance interpretation.

Each stage of the Interpreter adds a step with its inputs and outputs so a
failed or surprising interpretation can be replayed from the log.
"""
import json
import uuid
from datetime import datetime, timezone


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class ExecutionTrace:
    """
    Record of a single interpretation.
    """
    def __init__(self, utterance: str):
        self.trace_id = str(uuid.uuid4())
        self.start_time = _now()
        self.end_time = None
        self.utterance = utterance
        self.steps = []
        self.speech_act = None
        self.error = None

    def add_step(self, step_name: str, inputs: dict, outputs: dict, description: str = None):
        """
        Append a step.

        Args:
            step_name: Stage name (e.g. "Parse", "TypoFix").
            inputs: What the stage was given.
            outputs: What it produced.
            description: Optional one-line summary.
        """
        step = {
            "step_id": len(self.steps) + 1,
            "name": step_name,
            "timestamp": _now(),
            "inputs": inputs,
            "outputs": outputs,
        }
        if description:
            step["description"] = description
        self.steps.append(step)

    def step_names(self):
        return [s["name"] for s in self.steps]

    def set_speech_act(self, label: str):
        """Sets the final speech act label and concludes the trace."""
        self.speech_act = label
        self.end_time = _now()

    def set_error(self, error_message: str):
        """Records an error and concludes the trace."""
        self.error = error_message
        self.end_time = _now()

    def to_json(self, indent=2):
        return json.dumps(self, default=lambda o: o.__dict__, indent=indent, ensure_ascii=False)
