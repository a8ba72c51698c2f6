"""Employee Forge.

This package turns a free-text job description into an *AI employee*: a set of
autonomous agents, each with a capability set, an activation trigger and a
behavior prompt.

High-level architecture
-----------------------

- ``employee_forge.builder``:

  - Stages (decomposition, matching, assembly) driven by a bounded step runner
    that lets the language model call a closed set of tools.
  - A LangGraph-based branch state machine, one branch per workflow.
  - A fan-out/join engine with durable suspend/resume at human-input tool
    calls.
  - Repository interfaces and SQL implementations for checkpoints, events and
    approvals.
  - The capability risk policy used by the execution layer.

- ``employee_forge.core``:

  - Settings and logging configuration.

Typical workflow
----------------

1. ``EmployeeBuilderEngine.start(job_description, context)``.
2. If a branch asks a human a question, the thread is checkpointed and a
   ``Suspended`` outcome is returned.
3. ``EmployeeBuilderEngine.resume(thread_id, answer, context, tool_call_id=...)``
   continues the suspended branch from the checkpoint.
4. Once every branch terminated, the join step emits the ``AiEmployee``.
5. ``EmployeeBuilderEngine.continue_thread(thread_id, context)`` picks up a
   thread whose driving process stopped before it suspended or completed.
"""
