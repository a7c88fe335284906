"""Job descriptors and their canonical stored form."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from spine_delayed.core.errors import ValidationError


@dataclass(frozen=True)
class JobDescriptor:
    """A job waiting on the delayed schedule.

    Two descriptors are the same job iff their canonical serializations
    (:meth:`to_json`) are equal; removal from the schedule relies on this.

    Attributes:
        queue: Ready-to-run queue the job is forwarded to.
        job_class: Name of the class that performs the job.
        args: String-keyed, JSON-serializable arguments. Key order matters.
    """

    queue: str
    job_class: str
    args: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {"class": self.job_class, "args": dict(self.args), "queue": self.queue}

    def to_json(self) -> str:
        """Canonical serialization, as stored in a timestamp bucket."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> JobDescriptor:
        """Decode a stored descriptor.

        Older writers wrapped the arguments in a one-element list, and encode
        an empty argument set as a JSON array (``[]`` or ``[[]]``). Both forms
        are unwrapped here so such jobs still dispatch with their arguments.

        Raises:
            ValueError: If ``raw`` is not a descriptor.
        """
        data = json.loads(raw)
        if not isinstance(data, dict) or "class" not in data or "queue" not in data:
            raise ValueError(f"not a job descriptor: {raw!r}")

        args = data.get("args")
        if isinstance(args, list) and len(args) == 1:
            args = args[0]
        if args is None or args == []:
            args = {}
        if not isinstance(args, dict):
            raise ValueError(f"job arguments must be an object: {raw!r}")

        return cls(queue=data["queue"], job_class=data["class"], args=args)

    def __str__(self) -> str:
        return f"{self.job_class} in {self.queue}"


def make_job(queue: str, job_class: str, args: Mapping[str, Any] | None = None) -> JobDescriptor:
    """Validate caller input and build a :class:`JobDescriptor`.

    Raises:
        ValidationError: Empty class or queue, non-mapping arguments, or
            arguments that JSON cannot encode.
    """
    if not job_class:
        raise ValidationError("Jobs must be given a class.", field="job_class", value=job_class)
    if not queue:
        raise ValidationError("Jobs must be put in a queue.", field="queue", value=queue)

    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        raise ValidationError(
            "Job arguments must be a string-keyed mapping.", field="args", value=args
        )
    if any(not isinstance(key, str) for key in args):
        raise ValidationError("Job argument names must be strings.", field="args", value=args)

    job = JobDescriptor(queue=queue, job_class=job_class, args=dict(args))
    try:
        job.to_json()
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Job arguments are not JSON-serializable: {exc}", field="args", cause=exc
        ) from exc
    return job


__all__ = ["JobDescriptor", "make_job"]
