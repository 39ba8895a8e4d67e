"""PR Impact Bot - change-impact analysis for GitHub pull requests.

Turns a pull request into:
  - Changed classes and methods (line-level localisation of the patch)
  - Their transitive blast radius over the dependency graph
  - A risk level, a markdown comment and a commit status
"""
