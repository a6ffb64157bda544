"""catalog/ -- Videos, subscriptions and watch history for VideoTube.

Layer rule: catalog/ may import from auth/ (it joins against the users
table) but never from api/ or media/.
"""
