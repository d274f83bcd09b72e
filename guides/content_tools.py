"""Tool handlers for ``guides/workflows``.

Run with:
    toolflow workflow run content-brief --definitions guides/workflows \
        --tools guides/content_tools.py -q "Write a brief about cold brew coffee in Canada"
"""

from toolflow import LocalToolGateway

gateway = LocalToolGateway()


@gateway.tool()
def related_questions(topic):
    return [f"What is {topic}?", f"How to make {topic} at home?"]


@gateway.tool()
def search_volume(keyword, location):
    return {"keyword": keyword, "location": location, "volume": 8100}


@gateway.tool()
def outline(topic, questions):
    return {
        "sections": [topic.title(), *questions],
        "insights": [f"{len(questions)} common questions found"],
    }
