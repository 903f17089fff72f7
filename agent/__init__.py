"""Agent internals -- the writing assistant and its streaming replies.

assistant.py owns the hosted assistant and thread for a channel;
response_handler.py streams one run into one chat reply, using
run_events.py to classify stream events and throttle.py to pace updates.
"""
