"""Core module for the coding agent.

This module provides the agent loop and its collaborators:
- assistant_message: Streaming parser for XML tool calls
- task: The ReAct turn loop for one user request
- tool_executor: Validation, authorization and execution of tool calls
- error_handler: Error classification and retry policy
- api_handler: Streaming chat completion client

Submodules are imported directly (``from core.task import Task``).
"""
