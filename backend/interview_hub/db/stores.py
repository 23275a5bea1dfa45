from interview_hub.db.interview_store import InterviewStore, build_interview_store
from interview_hub.db.user_store import UserStore, build_user_store

# process-wide stores; tests swap these attributes for fresh instances
user_store: UserStore = build_user_store()
interview_store: InterviewStore = build_interview_store()
