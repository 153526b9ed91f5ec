from noticesync.orchestrator import EngineState, NoticeEngine

__version__ = "0.1.0"
