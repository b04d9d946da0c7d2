"""
ATS Exceptions

Errors raised by the application workflow and the requirement records.
"""


class ApplicationConflictError(Exception):
    """The candidate already applied to this company job variant."""

    def __init__(self, candidate_id, job_variant_id):
        self.candidate_id = candidate_id
        self.job_variant_id = job_variant_id
        super().__init__(
            f"Candidate {candidate_id} already applied to job variant {job_variant_id}"
        )


class RequirementImmutableError(Exception):
    """A requirement referenced by a match explanation snapshot was edited."""

    def __init__(self, requirement_id, fields=None):
        self.requirement_id = requirement_id
        self.fields = list(fields or [])
        super().__init__(
            f"Requirement {requirement_id} is referenced by a match explanation "
            f"and cannot change ({', '.join(self.fields)})"
        )
