"""LectureHub: lecturer dashboard services for curriculum, calendar and attendance."""
