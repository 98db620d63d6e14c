from sqlalchemy import Update


def run_before_update(monkeypatch, session, rival):
    """Runs `rival` once, right before `session` executes its first UPDATE."""
    original = session.exec
    pending = [rival]

    def exec_(statement, *args, **kwargs):
        if pending and isinstance(statement, Update):
            pending.pop()()
        return original(statement, *args, **kwargs)

    monkeypatch.setattr(session, "exec", exec_)
