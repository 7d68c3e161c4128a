"""GraphQL documents for the Omnivore operations used by the relay."""

CREATE_LABEL = """
mutation CreateLabel($input: CreateLabelInput!) {
  createLabel(input: $input) {
    ... on CreateLabelSuccess {
      label { id name color description }
    }
    ... on CreateLabelError { errorCodes }
  }
}
"""

ADD_LABEL_TO_HIGHLIGHT = """
mutation AddLabelToHighlight($input: AddLabelToHighlightInput!) {
  addLabelToHighlight(input: $input) {
    ... on AddLabelToHighlightSuccess {
      highlight { id type annotation labels { id name color } }
    }
    ... on AddLabelToHighlightError { errorCodes }
  }
}
"""

SET_LABELS_FOR_HIGHLIGHT = """
mutation SetLabelsForHighlight($input: SetLabelsForHighlightInput!) {
  setLabelsForHighlight(input: $input) {
    ... on SetLabelsSuccess {
      labels { id name color description }
    }
    ... on SetLabelsError { errorCodes }
  }
}
"""

GET_ARTICLE = """
query GetArticle($username: String!, $slug: String!, $format: String) {
  article(username: $username, slug: $slug, format: $format) {
    ... on ArticleSuccess {
      article {
        id
        title
        content
        labels { id name description }
        highlights { id shortId type annotation }
      }
    }
    ... on ArticleError { errorCodes }
  }
}
"""

CREATE_HIGHLIGHT = """
mutation CreateHighlight($input: CreateHighlightInput!) {
  createHighlight(input: $input) {
    ... on CreateHighlightSuccess {
      highlight { id shortId type annotation }
    }
    ... on CreateHighlightError { errorCodes }
  }
}
"""

UPDATE_HIGHLIGHT = """
mutation UpdateHighlight($input: UpdateHighlightInput!) {
  updateHighlight(input: $input) {
    ... on UpdateHighlightSuccess {
      highlight { id shortId type annotation }
    }
    ... on UpdateHighlightError { errorCodes }
  }
}
"""

LABELS = """
query Labels {
  labels {
    ... on LabelsSuccess {
      labels { id name color description }
    }
    ... on LabelsError { errorCodes }
  }
}
"""
