"""Study Hub - lesson content storage with per-user progress"""
