"""
Status constants and roles for the project marketplace.
Project lifecycle: Open → Assigned → Completed (or Open → Cancelled)
Task lifecycle: Pending → InProgress → Submitted → Completed/Rejected → Submitted ...
"""


class Role:
    """Principal roles issued by the authentication collaborator."""
    ADMIN = 'admin'
    BUYER = 'buyer'
    SOLVER = 'problem_solver'

    ALL = (ADMIN, BUYER, SOLVER)


class ProjectStatus:
    """Project lifecycle statuses."""
    OPEN = 'open'
    ASSIGNED = 'assigned'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    ALL = (OPEN, ASSIGNED, COMPLETED, CANCELLED)


class RequestStatus:
    """Solver request statuses."""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

    ALL = (PENDING, ACCEPTED, REJECTED)


class TaskStatus:
    """Task lifecycle statuses."""
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    SUBMITTED = 'submitted'
    COMPLETED = 'completed'
    REJECTED = 'rejected'

    ALL = (PENDING, IN_PROGRESS, SUBMITTED, COMPLETED, REJECTED)


class SubmissionStatus:
    """Submission review statuses."""
    PENDING_REVIEW = 'pending_review'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'

    ALL = (PENDING_REVIEW, ACCEPTED, REJECTED)


class ReviewDecision:
    """Buyer decisions on a submission."""
    ACCEPT = 'accept'
    REJECT = 'reject'

    ALL = (ACCEPT, REJECT)


# Status moves a buyer may make on their own project through a patch.
# open -> assigned only happens through request acceptance.
BUYER_PROJECT_TRANSITIONS = {
    ProjectStatus.OPEN: (ProjectStatus.CANCELLED,),
    ProjectStatus.ASSIGNED: (ProjectStatus.COMPLETED,),
    ProjectStatus.COMPLETED: (),
    ProjectStatus.CANCELLED: (),
}

# Status moves the assigned solver may make on a task through a patch.
# submitted/completed/rejected are driven by the review pipeline.
SOLVER_TASK_TRANSITIONS = {
    TaskStatus.PENDING: (TaskStatus.IN_PROGRESS,),
    TaskStatus.IN_PROGRESS: (),
    TaskStatus.SUBMITTED: (),
    TaskStatus.COMPLETED: (),
    TaskStatus.REJECTED: (TaskStatus.IN_PROGRESS,),
}
