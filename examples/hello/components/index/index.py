"""Logic for GET /"""

from ore import ore


def handler(request):
    ore.view.assign("title", "Ore")
