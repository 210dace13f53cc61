"""
Dominant parental-income group of U.S. colleges
===============================================

Loads the admissions (income mobility) and College Scorecard tables, builds one
profile per institution, and compares Naive Bayes classifiers of the dominant
attendance income group with stratified cross-validation.

Modules:
--------
- loader:      raw table loading and schema checks
- cleaning:    dominant-group extraction, joins and categorical cleanup
- naive_bayes: MixedNaiveBayes and the A/B/C feature subsets
- evaluate:    in-sample confusion matrices and k-fold cross-validation
- report:      charts, styled tables and the HTML report
- inference:   scoring with the saved model bundle
- train:       command-line entry point (python -m college_income.train)
"""

__version__ = "1.0.0"
