from app.services.nlu.base import NLUError, NLUProvider, NLUResult
from app.services.nlu.dialogflow_provider import DialogflowProvider

__all__ = ["NLUError", "NLUProvider", "NLUResult", "DialogflowProvider"]
